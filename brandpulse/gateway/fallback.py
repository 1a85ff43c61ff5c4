"""Bounded, ordered provider fallback.

Providers are tried in priority order, each at most once. The first
provider whose response is non-empty (and, for ``complete_parsed``,
accepted by the caller's parser) wins. Exhaustion raises
AllProvidersFailedError carrying every attempt.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from brandpulse.gateway.adapters import BaseProviderAdapter, get_adapter
from brandpulse.gateway.types import (
    AllProvidersFailedError,
    CompletionRequest,
    CompletionResponse,
    ProviderAttempt,
    ProviderName,
    RequestStatus,
)
from brandpulse.parsing.types import StructuredOutputError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderChain:
    def __init__(self, adapters: Sequence[BaseProviderAdapter], timeout: float = 30.0):
        self.adapters = list(adapters)
        self.timeout = timeout

    def __len__(self) -> int:
        return len(self.adapters)

    @property
    def provider_names(self) -> list[str]:
        return [a.name for a in self.adapters]

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Return the first successful non-empty response."""
        _, response = await self.complete_parsed(request, lambda text: text)
        return response

    async def complete_parsed(
        self,
        request: CompletionRequest,
        parse: Callable[[str], T],
    ) -> tuple[T, CompletionResponse]:
        """Return (parsed value, response) from the first provider whose text ``parse`` accepts.

        ``parse`` signals rejection by raising StructuredOutputError; the
        next provider is then tried.
        """
        attempts: list[ProviderAttempt] = []

        for adapter in self.adapters:
            response = await adapter.complete(request, timeout=self.timeout)
            if not response.ok:
                attempts.append(ProviderAttempt(adapter.provider, response.status, response.error_message))
                continue

            try:
                value = parse(response.text)
            except StructuredOutputError as e:
                logger.warning(
                    "%s returned unparseable %s output: %s",
                    adapter.name,
                    request.purpose or "completion",
                    e,
                    extra={"provider": adapter.name},
                )
                attempts.append(ProviderAttempt(adapter.provider, RequestStatus.UNPARSEABLE, str(e)))
                continue

            if attempts:
                logger.info(
                    "%s succeeded for %s after %d failed provider(s)",
                    adapter.name,
                    request.purpose or "completion",
                    len(attempts),
                )
            return value, response

        logger.error(
            "All providers failed for %s: %s",
            request.purpose or "completion",
            "; ".join(str(a) for a in attempts) or "no providers configured",
        )
        raise AllProvidersFailedError(attempts, purpose=request.purpose)


def build_counting_chain(transport=None) -> ProviderChain:
    """Cerebras first, Gemini second; providers without an API key are left out."""
    from brandpulse.core.config import settings

    adapters: list[BaseProviderAdapter] = []
    if settings.cerebras_api_key:
        adapters.append(
            get_adapter(ProviderName.CEREBRAS, settings.cerebras_api_key, model=settings.cerebras_model, transport=transport)
        )
    if settings.gemini_api_key:
        adapters.append(
            get_adapter(ProviderName.GEMINI, settings.gemini_api_key, model=settings.gemini_model, transport=transport)
        )
    return ProviderChain(adapters, timeout=settings.provider_timeout_seconds)


def build_onboarding_chain(transport=None) -> ProviderChain:
    """OpenRouter first, Cerebras second, for competitor and brand-intel generation."""
    from brandpulse.core.config import settings

    adapters: list[BaseProviderAdapter] = []
    if settings.openrouter_api_key:
        adapters.append(
            get_adapter(
                ProviderName.OPENROUTER,
                settings.openrouter_api_key,
                model=settings.openrouter_model,
                site_url=settings.openrouter_site_url,
                site_title=settings.openrouter_site_title,
                transport=transport,
            )
        )
    if settings.cerebras_api_key:
        adapters.append(
            get_adapter(ProviderName.CEREBRAS, settings.cerebras_api_key, model=settings.cerebras_model, transport=transport)
        )
    return ProviderChain(adapters, timeout=settings.provider_timeout_seconds)
