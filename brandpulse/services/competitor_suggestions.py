"""Competitor suggestions for onboarding.

Asks the onboarding provider chain for a competitor list, extracts it through
the resilient parser (regex fallback enabled), then normalizes: trims names,
fills missing domains, deduplicates, drops the brand itself and generic
labels, and caps the list.
"""

from __future__ import annotations

import logging
import re

from brandpulse.gateway.fallback import ProviderChain
from brandpulse.gateway.types import AllProvidersFailedError, CompletionRequest
from brandpulse.parsing.extractor import StructuredOutputExtractor
from brandpulse.parsing.regex_fallback import extract_competitors_by_regex
from brandpulse.parsing.types import ExtractionResult
from brandpulse.parsing.validation import validate_competitor_list
from brandpulse.schemas.competitor import CompetitorItem, CompetitorListPayload, CompetitorSuggestion

logger = logging.getLogger(__name__)

MAX_COMPETITORS = 12
GENERIC_NAMES = frozenset({"company", "inc", "ltd", "corp", "corporation", "llc", "brand", "business"})

_PROTOCOL_RE = re.compile(r"^https?://", re.IGNORECASE)
_WWW_RE = re.compile(r"^www\.", re.IGNORECASE)

COMPETITOR_PROMPT = """You are a competitive intelligence analyst.

TASK:
- Identify up to 10 relevant competitors for "{company_name}" in the {industry} industry.
- If {company_name} does not operate in {country}, list companies that do and serve similar customer needs.
- Prioritize realistic, well-known organizations. Avoid defunct companies.
- Include a mix of direct and indirect competitors, clearly labelled.

OUTPUT:
Return ONLY valid JSON using this schema:
{{
  "competitors": [
    {{
      "name": "string",
      "domain": "string (domain or homepage URL)",
      "industry": "string",
      "relevance": "Direct Competitor | Indirect Competitor | Aspirational Alternative",
      "description": "Short neutral summary"
    }}
  ]
}}

CONTEXT:
- Brand: {company_name}
- Industry: {industry}
- Target Market: {country} ({locale})
{website_line}
RULES:
- DO NOT include {company_name} itself in the list.
- Output ONLY the JSON object, nothing after the closing brace.
"""


class CompetitorGenerationError(Exception):
    """No provider produced a usable competitor list."""


def strip_protocol(value: str) -> str:
    value = _PROTOCOL_RE.sub("", value.strip())
    return _WWW_RE.sub("", value).rstrip("/")


def _synthesized_domain(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower()) + ".com"


def normalize_competitors(
    items: list[CompetitorItem],
    company_name: str,
    source: str = "llm",
) -> list[CompetitorSuggestion]:
    """Dedupe (case-insensitive), drop self/generic names, fill domains, cap the list."""
    brand_key = company_name.strip().lower()
    seen: set[str] = set()
    suggestions: list[CompetitorSuggestion] = []

    for item in items:
        name = item.name.strip()
        key = name.lower()
        if len(name) < 2 or key == brand_key or key.rstrip(".") in GENERIC_NAMES or key in seen:
            logger.debug("Dropping competitor candidate %r", name)
            continue
        seen.add(key)

        domain = strip_protocol(item.domain) if item.domain else ""
        if not domain or "." not in domain:
            domain = _synthesized_domain(name)

        suggestions.append(
            CompetitorSuggestion(
                name=name,
                domain=domain,
                url=f"https://{domain}",
                logo=f"https://logo.clearbit.com/{domain}",
                industry=item.industry,
                relevance=item.relevance,
                description=item.description,
                source=source,
            )
        )
        if len(suggestions) >= MAX_COMPETITORS:
            break

    return suggestions


class CompetitorSuggestionService:
    def __init__(self, chain: ProviderChain, *, max_tokens: int = 3000, temperature: float = 0.6):
        self.chain = chain
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.extractor = StructuredOutputExtractor(
            validate_competitor_list,
            regex_fallback=extract_competitors_by_regex,
        )

    async def generate(
        self,
        company_name: str,
        industry: str = "General",
        domain: str | None = None,
        locale: str = "en-US",
        country: str = "US",
    ) -> list[CompetitorSuggestion]:
        """Return normalized competitor suggestions.

        Raises:
            CompetitorGenerationError: every provider failed or returned unusable output.
        """
        prompt = COMPETITOR_PROMPT.format(
            company_name=company_name,
            industry=industry or "General",
            country=country,
            locale=locale,
            website_line=f"- Website: {domain}\n" if domain else "",
        )
        request = CompletionRequest(
            prompt=prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            purpose="competitor_generation",
        )
        try:
            result, response = await self.chain.complete_parsed(request, self.extractor.extract)
        except AllProvidersFailedError as e:
            raise CompetitorGenerationError(str(e)) from e

        payload: CompetitorListPayload = result.value
        source = "llm-regex" if result.low_confidence else "llm"
        suggestions = normalize_competitors(payload.competitors, company_name, source=source)
        logger.info(
            "Generated %d competitors for %s via %s (%s)",
            len(suggestions),
            company_name,
            response.provider.value,
            _provenance_label(result),
        )
        return suggestions


def _provenance_label(result: ExtractionResult) -> str:
    return result.provenance.value + (", low confidence" if result.low_confidence else "")
