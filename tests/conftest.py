"""Pytest configuration and fixtures shared across all test modules.

Environment variables are seeded before any import that builds settings.
"""

import os

os.environ["APP_ENV"] = "testing"

os.environ.setdefault("LLM_PROVIDER", "groq")
os.environ.setdefault("LLM_MODEL", "llama-3.3-70b-versatile")
os.environ.setdefault("LLM_API_KEY", "test-key-123")
os.environ.setdefault("APP_ADMIN_KEY_REQUIRED", "true")
os.environ.setdefault("APP_ADMIN_API_KEYS", "admin-key-123,admin-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from explain_api.client.pacing import PacingLimiter  # noqa: E402
from explain_api.client.storage import InMemoryKeyValueStore  # noqa: E402


class FakeClock:
    """Settable UNIX-seconds clock."""

    def __init__(self, start: float = 1_760_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def pacing(store: InMemoryKeyValueStore, clock: FakeClock) -> PacingLimiter:
    return PacingLimiter(store=store, clock=clock)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": "admin-key-123"}


class FakeLLMClient:
    """Scripted provider: returns queued replies or raises queued errors."""

    def __init__(self, provider: str = "groq", text: str = "Hmm, so what happens at the base case?", json_value=None, error: Exception | None = None) -> None:
        self.provider = provider
        self.text = text
        self.json_value = json_value
        self.error = error
        self.calls: list[tuple] = []

    async def generate_text(self, system_prompt: str, user_message: str, **kwargs):
        self.calls.append(("text", system_prompt, user_message))
        if self.error:
            raise self.error
        return self.text

    async def generate_json(self, prompt: str, **kwargs):
        self.calls.append(("json", prompt))
        if self.error:
            raise self.error
        return self.json_value


@pytest.fixture
def fake_llm_cls() -> type[FakeLLMClient]:
    return FakeLLMClient
