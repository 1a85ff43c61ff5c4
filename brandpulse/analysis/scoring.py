"""Metric Calculators.

Computes, per entity and per answer:
  - Visibility Index (VI):
      VI = w_p × Prominence + w_d × Density
      Prominence = 1 / log10(first_position + 9)   (1.0 at position 1)
      Density    = occurrences / total_words
      Defaults: w_p = 0.6, w_d = 0.4

  - Share of Answers (SoA):
      SoA(a, b) = 100 × a / (a + b)

  - Sentiment:
      (positive_sentences − negative_sentences) / sentences
      over the sentences that mention the entity.

``None`` means "undefined" (nothing to measure), never zero.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from brandpulse.analysis.lexicon import DEFAULT_LEXICON, SentimentLexicon
from brandpulse.analysis.types import SentimentLabel, SentimentSentences

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisibilityWeights:
    """Calibration weights for the Visibility Index."""

    prominence: float = 0.6
    density: float = 0.4

    @classmethod
    def from_settings(cls) -> VisibilityWeights:
        from brandpulse.core.config import settings

        return cls(
            prominence=settings.visibility_prominence_weight,
            density=settings.visibility_density_weight,
        )


DEFAULT_WEIGHTS = VisibilityWeights()


def prominence(first_position: int) -> float:
    """Positional prominence: 1.0 at the first token, decaying logarithmically."""
    return 1.0 / math.log10(first_position + 9)


def visibility_index(
    occurrences: int,
    positions: Sequence[int],
    total_words: int,
    weights: VisibilityWeights = DEFAULT_WEIGHTS,
) -> float | None:
    """Calculate the Visibility Index of one entity in one answer.

    Returns:
        None if the answer has no words, 0.0 if the entity is absent,
        otherwise a value in [0, w_p + w_d].
    """
    if total_words <= 0:
        return None
    if occurrences <= 0:
        return 0.0
    if not positions:
        # Counted by the provider but not located locally: no prominence to measure
        logger.debug("VI: %d occurrences but no local positions, scoring 0", occurrences)
        return 0.0

    density = occurrences / total_words
    return weights.prominence * prominence(positions[0]) + weights.density * density


def share_of_answers(mine: int, theirs: int) -> float | None:
    """Percentage of mentions captured by ``mine`` against ``theirs``."""
    total = mine + theirs
    if total <= 0:
        return None
    return 100.0 * mine / total


def classify_sentence(sentence: str, lexicon: SentimentLexicon = DEFAULT_LEXICON) -> SentimentLabel:
    positive = lexicon.has_positive(sentence)
    negative = lexicon.has_negative(sentence)
    if positive and not negative:
        return SentimentLabel.POSITIVE
    if negative and not positive:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


def sentiment_score(sentences: Sequence[str], lexicon: SentimentLexicon = DEFAULT_LEXICON) -> float | None:
    """Net sentiment in [-1, 1] over the given sentences, None when there are none."""
    if not sentences:
        return None

    labels = [classify_sentence(s, lexicon) for s in sentences]
    positive = labels.count(SentimentLabel.POSITIVE)
    negative = labels.count(SentimentLabel.NEGATIVE)
    return (positive - negative) / len(sentences)


def extract_sentiment_sentences(
    sentences: Sequence[str],
    lexicon: SentimentLexicon = DEFAULT_LEXICON,
) -> SentimentSentences:
    """Split sentences into the literal positive and negative ones; neutral are dropped."""
    positive: list[str] = []
    negative: list[str] = []
    for sentence in sentences:
        label = classify_sentence(sentence, lexicon)
        if label is SentimentLabel.POSITIVE:
            positive.append(sentence)
        elif label is SentimentLabel.NEGATIVE:
            negative.append(sentence)
    return SentimentSentences(positive=tuple(positive), negative=tuple(negative))
