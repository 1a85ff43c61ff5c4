"""Hybrid Scoring Orchestrator.

Mention counts come from an LLM (which catches product names and spelling
variants the alias list misses), positions come from the local Alias Matcher.
Metrics are then computed deterministically from both.

Steps per answer:
  1. Reject unscoreable input (empty text, no words, no competitors)
  2. Tokenize once, locate brand/competitor positions locally
  3. Ask an LLM for the brand's product names (advisory, failure -> [])
  4. Ask the counting chain for verified {name: count} JSON
  5. VI / SoA / sentiment per entity -> one ScoreRow per competitor
"""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Sequence

from brandpulse.analysis.alias_matcher import build_alias_set, find_occurrences_with_sentences
from brandpulse.analysis.lexicon import DEFAULT_LEXICON, SentimentLexicon
from brandpulse.analysis.scoring import (
    DEFAULT_WEIGHTS,
    VisibilityWeights,
    extract_sentiment_sentences,
    sentiment_score,
    share_of_answers,
    visibility_index,
)
from brandpulse.analysis.types import (
    AliasSet,
    AnswerContext,
    BrandSpec,
    CompetitorSpec,
    MentionCounts,
    MentionCountingError,
    ScoreRow,
    TextUnit,
    UnscoreableAnswerError,
)
from brandpulse.core.metrics import SCORING_DURATION
from brandpulse.gateway.fallback import ProviderChain
from brandpulse.gateway.types import AllProvidersFailedError, CompletionRequest
from brandpulse.parsing.extractor import StructuredOutputExtractor
from brandpulse.parsing.validation import MentionCountsValidator, validate_product_names

logger = logging.getLogger(__name__)

COUNTING_SYSTEM_PROMPT = "You count entity mentions in text. Return only valid JSON."
PRODUCT_SYSTEM_PROMPT = "You extract product names from text. Return only a JSON array of strings."


def build_product_prompt(brand_name: str, answer: str, max_chars: int = 2000) -> str:
    return (
        f'List the product names, model names and sub-brands of "{brand_name}" that appear in the text below.\n'
        f'Do not include "{brand_name}" itself or products of other companies.\n'
        'Return a JSON array of strings, e.g. ["Model X", "Pro Series"]. Return [] if there are none.\n\n'
        f"TEXT:\n{answer[:max_chars]}"
    )


def build_counting_prompt(
    brand: AliasSet,
    competitors: Sequence[AliasSet],
    answer: str,
    product_names: Sequence[str] = (),
    max_chars: int = 3000,
) -> str:
    """Prompt for verified ``{name: count}`` mention counts."""
    brand_terms = [a for a in brand.aliases if a != brand.aliases[0]] + [p for p in product_names if p not in brand.aliases]
    lines = [
        "Count how many times each entity below is mentioned in the answer.",
        "",
        f"BRAND: {brand.canonical}",
    ]
    if brand_terms:
        lines.append(f"COUNT AS {brand.canonical}: {', '.join(brand_terms)}")
    lines.append("COMPETITORS:")
    for comp in competitors:
        extra = list(comp.aliases[1:])
        suffix = f" (also: {', '.join(extra)})" if extra else ""
        lines.append(f"- {comp.canonical}{suffix}")
    lines += [
        "",
        "Count each distinct mention once, including product names and spelling variants.",
        "Return ONLY a JSON object mapping each exact name above to an integer count, e.g.",
        '{"' + brand.canonical + '": 2' + "".join(f', "{c.canonical}": 0' for c in competitors[:2]) + "}",
        "",
        f"ANSWER:\n{answer[:max_chars]}",
    ]
    return "\n".join(lines)


class MentionCounter:
    """LLM-backed product extraction and mention counting."""

    def __init__(
        self,
        chain: ProviderChain,
        *,
        max_tokens: int = 500,
        temperature: float = 0.1,
        max_answer_chars: int = 3000,
        product_max_answer_chars: int = 2000,
    ):
        self.chain = chain
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_answer_chars = max_answer_chars
        self.product_max_answer_chars = product_max_answer_chars
        self._product_extractor = StructuredOutputExtractor(validate_product_names, container="array")

    async def extract_product_names(self, brand_name: str, answer: str) -> list[str]:
        """Advisory product names for the brand; any failure yields []."""
        request = CompletionRequest(
            prompt=build_product_prompt(brand_name, answer, self.product_max_answer_chars),
            system_prompt=PRODUCT_SYSTEM_PROMPT,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            purpose="product_extraction",
        )
        try:
            result, _ = await self.chain.complete_parsed(request, self._product_extractor.extract)
        except AllProvidersFailedError as e:
            logger.warning("Product name extraction for %r failed, continuing without: %s", brand_name, e)
            return []
        brand_lower = brand_name.strip().lower()
        return [name for name in result.value if name != brand_lower]

    async def count_mentions(
        self,
        brand: AliasSet,
        competitors: Sequence[AliasSet],
        answer: str,
        product_names: Sequence[str] = (),
    ) -> MentionCounts:
        """Verified counts from the first provider that returns valid JSON.

        Raises:
            MentionCountingError: every provider failed or returned unusable output.
        """
        extractor = StructuredOutputExtractor(
            MentionCountsValidator(brand.canonical, [c.canonical for c in competitors])
        )
        request = CompletionRequest(
            prompt=build_counting_prompt(brand, competitors, answer, product_names, self.max_answer_chars),
            system_prompt=COUNTING_SYSTEM_PROMPT,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            purpose="mention_counting",
        )
        try:
            result, response = await self.chain.complete_parsed(request, extractor.extract)
        except AllProvidersFailedError as e:
            raise MentionCountingError(str(e)) from e

        counts: MentionCounts = result.value
        return dataclasses.replace(counts, provider=response.provider.value, product_names=tuple(product_names))


class HybridScoringOrchestrator:
    def __init__(
        self,
        counter: MentionCounter,
        *,
        weights: VisibilityWeights = DEFAULT_WEIGHTS,
        lexicon: SentimentLexicon = DEFAULT_LEXICON,
    ):
        self.counter = counter
        self.weights = weights
        self.lexicon = lexicon

    async def score_answer(
        self,
        context: AnswerContext,
        brand: BrandSpec,
        competitors: Sequence[CompetitorSpec],
        raw_answer: str,
    ) -> list[ScoreRow]:
        """Score one answer against every competitor.

        Raises:
            UnscoreableAnswerError: empty answer, no words or no competitors.
            MentionCountingError: no provider returned usable counts.
        """
        if not raw_answer or not raw_answer.strip():
            raise UnscoreableAnswerError("empty answer text")
        if not brand.name or not brand.name.strip():
            raise UnscoreableAnswerError("missing brand name")
        if not competitors:
            raise UnscoreableAnswerError("no competitors configured")

        text = TextUnit.from_text(raw_answer)
        if text.total_words == 0:
            raise UnscoreableAnswerError("answer contains no words")

        started = time.monotonic()

        brand_aliases = build_alias_set(brand.name, brand.aliases)
        competitor_aliases = [build_alias_set(c.name, c.aliases) for c in competitors]

        brand_mentions = find_occurrences_with_sentences(text, brand_aliases)
        competitor_mentions = [find_occurrences_with_sentences(text, a) for a in competitor_aliases]

        product_names = await self.counter.extract_product_names(brand.name, text.normalized)
        counts = await self.counter.count_mentions(brand_aliases, competitor_aliases, text.normalized, product_names)

        # Brand side is shared by every row
        brand_vi = visibility_index(counts.brand, brand_mentions.occurrence.positions, text.total_words, self.weights)
        brand_soa = share_of_answers(counts.brand, counts.competitor_total)
        brand_sentiment = sentiment_score(brand_mentions.sentences, self.lexicon)
        brand_sentences = extract_sentiment_sentences(brand_mentions.sentences, self.lexicon)

        rows: list[ScoreRow] = []
        for competitor, aliases, mentions in zip(competitors, competitor_aliases, competitor_mentions):
            comp_count = counts.for_competitor(aliases.canonical)
            comp_sentences = extract_sentiment_sentences(mentions.sentences, self.lexicon)
            rows.append(
                ScoreRow(
                    customer_id=context.customer_id,
                    brand_id=context.brand_id or brand.id,
                    brand_name=context.brand_name or brand.name,
                    query_id=context.query_id,
                    query_text=context.query_text,
                    execution_id=context.execution_id,
                    collector_type=context.collector_type,
                    competitor_name=competitor.name,
                    visibility_index=brand_vi,
                    visibility_index_competitor=visibility_index(
                        comp_count, mentions.occurrence.positions, text.total_words, self.weights
                    ),
                    share_of_answers=brand_soa,
                    share_of_answers_competitor=share_of_answers(comp_count, counts.brand),
                    sentiment_score=brand_sentiment,
                    sentiment_score_competitor=sentiment_score(mentions.sentences, self.lexicon),
                    brand_positions=brand_mentions.occurrence.positions,
                    competitor_positions=mentions.occurrence.positions,
                    positive_sentiment_sentences=brand_sentences.positive,
                    negative_sentiment_sentences=brand_sentences.negative,
                    positive_sentiment_sentences_competitor=comp_sentences.positive,
                    negative_sentiment_sentences_competitor=comp_sentences.negative,
                    total_words=text.total_words,
                )
            )

        elapsed = time.monotonic() - started
        SCORING_DURATION.observe(elapsed)
        logger.info(
            "Scored answer for %s: %d competitor rows, brand_count=%d competitor_total=%d via %s in %.2fs",
            brand.name,
            len(rows),
            counts.brand,
            counts.competitor_total,
            counts.provider,
            elapsed,
            extra={"collector_result_id": context.collector_result_id},
        )
        return rows


def build_default_orchestrator(chain: ProviderChain | None = None) -> HybridScoringOrchestrator:
    """Wire the orchestrator from settings."""
    from brandpulse.core.config import settings
    from brandpulse.gateway.fallback import build_counting_chain

    counter = MentionCounter(
        chain or build_counting_chain(),
        max_tokens=settings.counting_max_tokens,
        temperature=settings.counting_temperature,
        max_answer_chars=settings.counting_max_answer_chars,
        product_max_answer_chars=settings.product_extraction_max_answer_chars,
    )
    return HybridScoringOrchestrator(counter, weights=VisibilityWeights.from_settings())
