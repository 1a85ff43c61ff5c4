"""Sentiment keyword lexicon.

Keyword lists are calibration constants: substring presence in a lowercased
sentence decides its polarity. Override by constructing a SentimentLexicon.
"""

from __future__ import annotations

from dataclasses import dataclass

POSITIVE_KEYWORDS: tuple[str, ...] = (
    "good", "great", "best", "excellent", "love", "liked", "awesome", "effective",
    "recommended", "positive", "amazing", "outstanding", "superior", "fantastic",
    "popular", "preferred", "leading", "top", "quality", "reliable", "trusted",
    "favorite", "better", "improved", "successful", "winning", "advanced",
    "innovative", "powerful", "fast", "efficient", "affordable", "valuable",
    "worth", "satisfied", "happy", "pleased", "impressive", "strong", "durable",
    "comfortable",
)  # fmt: skip

NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "bad", "poor", "terrible", "hate", "dislike", "worst", "ineffective", "painful",
    "negative", "awful", "horrible", "inferior", "disappointing", "problem", "issue",
    "complaint", "faulty", "broken", "defective", "unreliable", "slow", "expensive",
    "overpriced", "waste", "regret", "avoid", "warning", "dangerous", "risky",
    "unstable", "weak", "cheap", "flimsy", "uncomfortable", "difficult", "complex",
)  # fmt: skip


@dataclass(frozen=True)
class SentimentLexicon:
    positive: tuple[str, ...] = POSITIVE_KEYWORDS
    negative: tuple[str, ...] = NEGATIVE_KEYWORDS

    def has_positive(self, sentence: str) -> bool:
        lowered = sentence.lower()
        return any(word in lowered for word in self.positive)

    def has_negative(self, sentence: str) -> bool:
        lowered = sentence.lower()
        return any(word in lowered for word in self.negative)


DEFAULT_LEXICON = SentimentLexicon()
