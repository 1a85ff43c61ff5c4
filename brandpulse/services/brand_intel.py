"""Brand profile extraction for onboarding."""

from __future__ import annotations

import logging

from brandpulse.gateway.fallback import ProviderChain
from brandpulse.gateway.types import AllProvidersFailedError, CompletionRequest
from brandpulse.parsing.extractor import StructuredOutputExtractor
from brandpulse.parsing.validation import validate_brand_intel
from brandpulse.schemas.brand_intel import BrandIntel

logger = logging.getLogger(__name__)

BRAND_INTEL_SYSTEM_PROMPT = """You are a brand research analyst. Given a brand name or website, return ONLY a JSON object:
{
  "brandName": "official brand name",
  "homepageUrl": "https://...",
  "summary": "2-3 sentence neutral description",
  "ceo": "current CEO or null",
  "headquarters": "City, Country",
  "foundedYear": 1999,
  "industry": "primary industry",
  "competitors": ["up to 8 competitor names"]
}
Use null for unknown values. No text outside the JSON."""


class BrandIntelService:
    def __init__(self, chain: ProviderChain, *, max_tokens: int = 2000, temperature: float = 0.3):
        self.chain = chain
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.extractor = StructuredOutputExtractor(validate_brand_intel)

    async def generate(self, raw_input: str) -> BrandIntel | None:
        """Profile for a brand name or URL; None when no provider returns a valid profile."""
        request = CompletionRequest(
            prompt=f"Analyze this brand: {raw_input}",
            system_prompt=BRAND_INTEL_SYSTEM_PROMPT,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            purpose="brand_intel",
        )
        try:
            result, response = await self.chain.complete_parsed(request, self.extractor.extract)
        except AllProvidersFailedError as e:
            logger.error("Brand intel for %r unavailable: %s", raw_input, e)
            return None

        intel: BrandIntel = result.value
        logger.info("Brand intel for %r via %s (%s)", raw_input, response.provider.value, result.provenance.value)
        return intel
