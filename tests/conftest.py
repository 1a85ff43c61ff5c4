import pytest

from brandpulse import models  # noqa: F401  (registers tables)
from brandpulse.core.config import settings
from brandpulse.db.base import Base
from brandpulse.db.session import create_engine_and_session_factory
from brandpulse.gateway.adapters import BaseProviderAdapter
from brandpulse.gateway.types import CompletionRequest, CompletionResponse, ProviderName, RequestStatus

# Override settings for tests
settings.app_env = "test"
settings.cerebras_api_key = ""
settings.gemini_api_key = ""
settings.openrouter_api_key = ""


class ScriptedAdapter(BaseProviderAdapter):
    """Provider adapter that replays canned replies instead of calling HTTP.

    A str reply succeeds with that text; a RequestStatus reply fails with that status.
    Once the script runs out every call fails with VENDOR_ERROR.
    """

    def __init__(self, provider: ProviderName, replies=()):
        super().__init__(api_key="test-key")
        self.provider = provider
        self.replies = list(replies)
        self.requests: list[CompletionRequest] = []

    def _build_call(self, request, model):
        raise NotImplementedError

    def _parse(self, data, response):
        raise NotImplementedError

    async def complete(self, request: CompletionRequest, timeout: float = 30.0) -> CompletionResponse:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else RequestStatus.VENDOR_ERROR
        if isinstance(reply, RequestStatus):
            return CompletionResponse(
                request_id=request.request_id,
                provider=self.provider,
                status=reply,
                error_message="scripted failure",
            )
        return CompletionResponse(request_id=request.request_id, provider=self.provider, text=reply)


@pytest.fixture
def scripted_adapter():
    return ScriptedAdapter


@pytest.fixture
async def session_factory(tmp_path):
    """Fresh file-backed SQLite database per test (file so concurrent sessions share it)."""
    engine, factory = create_engine_and_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()
