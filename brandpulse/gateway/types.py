"""Core types and DTOs for the provider gateway."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderName(str, Enum):
    """Supported LLM providers."""

    CEREBRAS = "cerebras"
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class RequestStatus(str, Enum):
    """Outcome of a single provider call."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    VENDOR_ERROR = "vendor_error"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"  # DNS, connection reset, TLS
    CENSORED = "censored"  # Gemini SAFETY filter or similar
    EMPTY_RESPONSE = "empty_response"  # HTTP 200 but no text in the envelope
    UNPARSEABLE = "unparseable"  # Text present but rejected by the caller's parser


# ---------------------------------------------------------------------------
# Request / Response
# ---------------------------------------------------------------------------


@dataclass
class CompletionRequest:
    """A single prompt to dispatch to a provider."""

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    prompt: str = ""
    system_prompt: str = ""
    model: str = ""  # empty -> adapter default
    temperature: float = 0.1
    max_tokens: int = 500
    purpose: str = ""  # for logs only, e.g. "mention_counting"


@dataclass
class CompletionResponse:
    """Unified response DTO, same structure regardless of provider."""

    request_id: str = ""
    provider: ProviderName = ProviderName.CEREBRAS
    model_version: str = ""
    status: RequestStatus = RequestStatus.SUCCESS

    text: str = ""

    latency_ms: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    completed_at: datetime | None = None

    # Error details (if status != SUCCESS)
    error_code: str = ""
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == RequestStatus.SUCCESS and bool(self.text.strip())

    def mark_completed(self) -> None:
        self.completed_at = datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProviderAttempt:
    """One entry in the fallback chain's attempt log."""

    provider: ProviderName
    status: RequestStatus
    error_message: str = ""

    def __str__(self) -> str:
        detail = f" ({self.error_message})" if self.error_message else ""
        return f"{self.provider.value}: {self.status.value}{detail}"


class AllProvidersFailedError(Exception):
    """Every provider in the chain failed or returned unusable output."""

    def __init__(self, attempts: list[ProviderAttempt], purpose: str = ""):
        self.attempts = list(attempts)
        self.purpose = purpose
        detail = "; ".join(str(a) for a in self.attempts) or "no providers configured"
        label = f" for {purpose}" if purpose else ""
        super().__init__(f"All LLM providers failed{label}: {detail}")
