"""Core types and DTOs for the visibility scoring engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from brandpulse.analysis.tokenizer import normalize_whitespace, tokenize


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SentimentLabel(str, Enum):
    """Polarity of a single sentence."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"  # Both or neither keyword set present
    NEGATIVE = "negative"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class UnscoreableAnswerError(ValueError):
    """The answer cannot be scored (empty text, no words, no competitors)."""

    def __init__(self, reason: str):
        super().__init__(f"Answer cannot be scored: {reason}")
        self.reason = reason


class MentionCountingError(Exception):
    """Every configured provider failed to return usable mention counts."""


# ---------------------------------------------------------------------------
# Text containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextUnit:
    """A raw answer with its normalized form and token sequence."""

    raw: str
    normalized: str
    tokens: tuple[str, ...]

    @property
    def total_words(self) -> int:
        return len(self.tokens)

    @classmethod
    def from_text(cls, raw: str) -> TextUnit:
        normalized = normalize_whitespace(raw)
        return cls(raw=raw, normalized=normalized, tokens=tuple(tokenize(normalized)))


@dataclass(frozen=True)
class AliasSet:
    """All lowercase surface forms of one entity.

    ``aliases[0]`` is always the lowercased canonical name.
    """

    canonical: str
    aliases: tuple[str, ...]

    @property
    def token_sequences(self) -> tuple[tuple[str, ...], ...]:
        """Distinct alias token sequences, longest first (ties keep alias order)."""
        seen: set[tuple[str, ...]] = set()
        sequences: list[tuple[str, ...]] = []
        for alias in self.aliases:
            seq = tuple(tokenize(alias))
            if seq and seq not in seen:
                seen.add(seq)
                sequences.append(seq)
        return tuple(sorted(sequences, key=len, reverse=True))


@dataclass(frozen=True)
class Occurrence:
    """1-based token positions where an alias set matched."""

    positions: tuple[int, ...] = ()

    @property
    def count(self) -> int:
        return len(self.positions)

    @property
    def first_position(self) -> int | None:
        return self.positions[0] if self.positions else None


@dataclass(frozen=True)
class MentionSentences:
    """Occurrences plus the distinct sentences that contain them."""

    occurrence: Occurrence
    sentences: tuple[str, ...] = ()


@dataclass(frozen=True)
class SentimentSentences:
    positive: tuple[str, ...] = ()
    negative: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Scoring inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BrandSpec:
    """The tracked brand as known to the scoring engine."""

    id: str
    name: str
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompetitorSpec:
    name: str
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class AnswerContext:
    """Identifiers carried from the collected answer onto every score row."""

    customer_id: str | None = None
    brand_id: str | None = None
    brand_name: str = ""
    query_id: str | None = None
    query_text: str = ""
    execution_id: str | None = None
    collector_type: str | None = None
    collector_result_id: int | None = None


@dataclass(frozen=True)
class MentionCounts:
    """Verified mention counts returned by the counting provider."""

    brand: int
    competitors: dict[str, int] = field(default_factory=dict)
    provider: str = ""
    product_names: tuple[str, ...] = ()

    @property
    def competitor_total(self) -> int:
        return sum(self.competitors.values())

    def for_competitor(self, name: str) -> int:
        return self.competitors.get(name, 0)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoreRow:
    """Brand-vs-competitor metrics for a single answer.

    Brand-side fields are identical across all rows produced for one answer.
    """

    customer_id: str | None
    brand_id: str | None
    brand_name: str
    query_id: str | None
    query_text: str
    execution_id: str | None
    collector_type: str | None
    competitor_name: str

    visibility_index: float | None
    visibility_index_competitor: float | None
    share_of_answers: float | None
    share_of_answers_competitor: float | None
    sentiment_score: float | None
    sentiment_score_competitor: float | None

    brand_positions: tuple[int, ...] = ()
    competitor_positions: tuple[int, ...] = ()
    positive_sentiment_sentences: tuple[str, ...] = ()
    negative_sentiment_sentences: tuple[str, ...] = ()
    positive_sentiment_sentences_competitor: tuple[str, ...] = ()
    negative_sentiment_sentences_competitor: tuple[str, ...] = ()
    total_words: int = 0

    @property
    def brand_position(self) -> int | None:
        return self.brand_positions[0] if self.brand_positions else None

    @property
    def competitor_position(self) -> int | None:
        return self.competitor_positions[0] if self.competitor_positions else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict for storage."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        data["brand_position"] = self.brand_position
        data["competitor_position"] = self.competitor_position
        return data
