"""Provider adapters: protocol-level handling for each LLM provider.

Each adapter translates a CompletionRequest into the provider's HTTP
protocol, sends it, and returns a CompletionResponse with normalized fields.
Adapters never raise for provider-side failures; the outcome is reported
through ``CompletionResponse.status``.

Provider-specific behaviors:
  - Cerebras / OpenRouter: OpenAI-compatible chat completions; text is read
    from choices[0].message.content or choices[0].text
  - Gemini: Google AI generateContent, finishReason SAFETY -> CENSORED
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from brandpulse.core.metrics import PROVIDER_REQUESTS
from brandpulse.gateway.types import CompletionRequest, CompletionResponse, ProviderName, RequestStatus

logger = logging.getLogger(__name__)


class BaseProviderAdapter(ABC):
    """Base class for all provider adapters.

    ``transport`` is passed through to httpx.AsyncClient; tests inject
    httpx.MockTransport here.
    """

    provider: ProviderName
    default_model: str = ""

    def __init__(
        self,
        api_key: str,
        model: str = "",
        api_url: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        if api_url:
            self.api_url = api_url
        self.transport = transport

    @property
    def name(self) -> str:
        return self.provider.value

    @abstractmethod
    def _build_call(self, request: CompletionRequest, model: str) -> tuple[str, dict, dict, dict | None]:
        """Return (url, json payload, headers, query params)."""

    @abstractmethod
    def _parse(self, data: dict[str, Any], response: CompletionResponse) -> None:
        """Fill text/tokens/status on ``response`` from a decoded JSON body."""

    async def complete(self, request: CompletionRequest, timeout: float = 30.0) -> CompletionResponse:
        """Send a request and return a normalized response. Never raises for provider errors."""
        response = CompletionResponse(request_id=request.request_id, provider=self.provider)
        model = request.model or self.model
        response.model_version = model
        url, payload, headers, params = self._build_call(request, model)
        start = time.monotonic()

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                resp = await client.post(url, json=payload, headers=headers, params=params)

            response.latency_ms = int((time.monotonic() - start) * 1000)

            if resp.status_code == 429:
                response.status = RequestStatus.RATE_LIMITED
                response.error_code = "429"
                response.error_message = f"Rate limited by {self.name}"
            else:
                resp.raise_for_status()
                data = resp.json()
                if not isinstance(data, dict):
                    raise ValueError(f"unexpected top-level JSON {type(data).__name__}")
                self._parse(data, response)
                if response.status == RequestStatus.SUCCESS and not response.text.strip():
                    response.status = RequestStatus.EMPTY_RESPONSE
                    response.error_message = "Provider returned no text"

        except httpx.TimeoutException:
            response.status = RequestStatus.TIMEOUT
            response.error_message = f"{self.name} timeout after {timeout}s"
            response.latency_ms = int((time.monotonic() - start) * 1000)
        except httpx.HTTPStatusError as e:
            response.status = RequestStatus.VENDOR_ERROR
            response.error_code = str(e.response.status_code)
            response.error_message = str(e)
            response.latency_ms = int((time.monotonic() - start) * 1000)
        except httpx.RequestError as e:
            response.status = RequestStatus.TRANSPORT_ERROR
            response.error_message = f"{type(e).__name__}: {e}"
            response.latency_ms = int((time.monotonic() - start) * 1000)
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            # Non-JSON body or unexpected envelope
            response.status = RequestStatus.VENDOR_ERROR
            response.error_code = "BAD_BODY"
            response.error_message = str(e)

        response.mark_completed()
        PROVIDER_REQUESTS.labels(provider=self.name, status=response.status.value).inc()
        if response.status != RequestStatus.SUCCESS:
            logger.warning(
                "%s %s request %s failed: %s %s",
                self.name,
                request.purpose or "completion",
                request.request_id,
                response.status.value,
                response.error_message,
                extra={"provider": self.name},
            )
        return response


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions (Cerebras, OpenRouter)
# ---------------------------------------------------------------------------


def _token_count(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def extract_choice_text(data: dict[str, Any]) -> str:
    """Read the first choice's text from a chat or legacy completions envelope."""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    choice = choices[0]
    message = choice.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    if isinstance(choice.get("text"), str):
        return choice["text"]
    return ""


class OpenAICompatibleAdapter(BaseProviderAdapter):
    """Chat completions adapter for any OpenAI-compatible endpoint."""

    api_url = ""

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_call(self, request: CompletionRequest, model: str) -> tuple[str, dict, dict, dict | None]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        payload = {
            "model": model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        return self.api_url, payload, self._headers(), None

    def _parse(self, data: dict[str, Any], response: CompletionResponse) -> None:
        response.text = extract_choice_text(data)
        response.model_version = data.get("model") or response.model_version
        usage = data.get("usage")
        if isinstance(usage, dict):
            response.input_tokens = _token_count(usage.get("prompt_tokens"))
            response.output_tokens = _token_count(usage.get("completion_tokens"))
        response.status = RequestStatus.SUCCESS


class CerebrasAdapter(OpenAICompatibleAdapter):
    provider = ProviderName.CEREBRAS
    default_model = "llama3.1-8b"
    api_url = "https://api.cerebras.ai/v1/chat/completions"


class OpenRouterAdapter(OpenAICompatibleAdapter):
    """OpenRouter adds attribution headers on top of the OpenAI protocol."""

    provider = ProviderName.OPENROUTER
    default_model = "openai/gpt-oss-20b"
    api_url = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, api_key: str, site_url: str = "", site_title: str = "", **kwargs):
        super().__init__(api_key, **kwargs)
        self.site_url = site_url
        self.site_title = site_title

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.site_title:
            headers["X-Title"] = self.site_title
        return headers


# ---------------------------------------------------------------------------
# Gemini Adapter (Google AI)
# ---------------------------------------------------------------------------


class GeminiAdapter(BaseProviderAdapter):
    """Google Gemini adapter with SAFETY filter detection."""

    provider = ProviderName.GEMINI
    default_model = "gemini-2.0-flash"
    api_url = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def _build_call(self, request: CompletionRequest, model: str) -> tuple[str, dict, dict, dict | None]:
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }
        # System instruction is separate from contents in the Gemini API
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}

        url = self.api_url.format(model=model)
        return url, payload, {"Content-Type": "application/json"}, {"key": self.api_key}

    def _parse(self, data: dict[str, Any], response: CompletionResponse) -> None:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            block_reason = feedback.get("blockReason", "") if isinstance(feedback, dict) else ""
            if block_reason:
                response.status = RequestStatus.CENSORED
                response.error_code = f"BLOCKED_{block_reason}"
                response.error_message = f"Prompt blocked: {block_reason}"
                return
            response.status = RequestStatus.SUCCESS
            return

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise ValueError(f"unexpected candidate {type(candidate).__name__}")
        if candidate.get("finishReason") == "SAFETY":
            response.status = RequestStatus.CENSORED
            response.error_code = "SAFETY"
            response.error_message = "Gemini safety filter triggered"
            return

        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            parts = []
        # Skip reasoning parts on thinking models
        response.text = "".join(
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str) and not p.get("thought")
        )

        usage = data.get("usageMetadata")
        if isinstance(usage, dict):
            response.input_tokens = _token_count(usage.get("promptTokenCount"))
            response.output_tokens = _token_count(usage.get("candidatesTokenCount"))
        response.status = RequestStatus.SUCCESS


ADAPTER_REGISTRY: dict[ProviderName, type[BaseProviderAdapter]] = {
    ProviderName.CEREBRAS: CerebrasAdapter,
    ProviderName.GEMINI: GeminiAdapter,
    ProviderName.OPENROUTER: OpenRouterAdapter,
}


def get_adapter(provider: ProviderName, api_key: str, **kwargs) -> BaseProviderAdapter:
    """Instantiate the adapter for ``provider``."""
    adapter_cls = ADAPTER_REGISTRY.get(provider)
    if adapter_cls is None:
        raise ValueError(f"No adapter registered for provider: {provider}")
    return adapter_cls(api_key=api_key, **kwargs)
