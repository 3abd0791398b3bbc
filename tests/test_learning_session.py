"""Tests for the learning session flow and the HTTP client."""

import json

import httpx
import pytest

from explain_api.client.pacing import PacingConfig, PacingLimiter
from explain_api.client.session import (
    LearningSession,
    ServerRateLimitedError,
    SessionState,
    TutorClient,
)


class RecordingHandler:
    """httpx MockTransport handler returning scripted responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.body: dict = {"response": "Wait, why does it stop?", "provider": "groq"}
        self.headers: dict[str, str] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body, headers=self.headers)


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def client(handler: RecordingHandler) -> TutorClient:
    with TutorClient("http://tutor.test", transport=httpx.MockTransport(handler)) as c:
        yield c


@pytest.fixture
def session(pacing: PacingLimiter, client: TutorClient) -> LearningSession:
    return LearningSession(pacing, client, system_prompt="You are a curious student.")


class TestTutorClient:
    def test_chat_posts_payload(self, client: TutorClient, handler: RecordingHandler) -> None:
        reply = client.chat("persona", "A queue is first in, first out.")

        assert reply.response == "Wait, why does it stop?"
        assert reply.provider == "groq"
        request = handler.requests[0]
        assert request.url.path == "/api/chat"
        assert json.loads(request.content) == {
            "system_prompt": "persona",
            "user_message": "A queue is first in, first out.",
        }

    def test_checklist(self, client: TutorClient, handler: RecordingHandler) -> None:
        handler.body = {"checklist": [{"concept": "FIFO", "importance": "critical"}], "provider": "groq"}

        result = client.generate_checklist("Queues")

        assert result.checklist[0].concept == "FIFO"
        assert handler.requests[0].url.path == "/api/generate-checklist"

    def test_429_raises_with_retry_after(self, client: TutorClient, handler: RecordingHandler) -> None:
        handler.status = 429
        handler.body = {"error": "Rate limit exceeded", "message": "Too many requests.", "retryAfter": 17}

        with pytest.raises(ServerRateLimitedError) as exc_info:
            client.chat("persona", "hello")

        assert exc_info.value.retry_after == 17
        assert exc_info.value.message == "Too many requests."

    @pytest.mark.parametrize(
        ("body", "header", "expected"),
        [
            ({"error": "Rate limit exceeded"}, "12", 12),
            ({"error": "Rate limit exceeded"}, "Wed, 21 Oct 2026 07:28:00 GMT", 0),
            ({"retryAfter": "soon"}, "9", 9),
            ({"retryAfter": 2.2}, None, 3),
            (["not", "an", "object"], None, 0),
        ],
    )
    def test_429_with_unusual_retry_after(
        self, client: TutorClient, handler: RecordingHandler, body, header, expected
    ) -> None:
        handler.status = 429
        handler.body = body
        handler.headers = {"Retry-After": header} if header is not None else {}

        with pytest.raises(ServerRateLimitedError) as exc_info:
            client.chat("persona", "hello")

        assert exc_info.value.retry_after == expected
        assert exc_info.value.message == "Too many requests. Please try again later."

    def test_other_errors_propagate(self, client: TutorClient, handler: RecordingHandler) -> None:
        handler.status = 502
        handler.body = {"error": {"code": "llm_unavailable"}}

        with pytest.raises(httpx.HTTPStatusError):
            client.chat("persona", "hello")


class TestLearningSession:
    def test_full_happy_path(self, session: LearningSession, pacing: PacingLimiter) -> None:
        assert session.start().allowed is True
        assert session.state is SessionState.ACTIVE

        outcome = session.submit_round("Recursion is a function calling itself.")
        assert outcome.decision.allowed is True
        assert outcome.reply.response == "Wait, why does it stop?"
        assert session.rounds == 1

        session.finish()

        assert session.state is SessionState.IDLE
        assert pacing.check_daily_limit().remaining == 19
        assert pacing.check_cooldown().allowed is False

    def test_cooldown_blocks_next_start(self, session: LearningSession, clock) -> None:
        session.start()
        session.finish()

        decision = session.start()
        assert decision.allowed is False
        assert decision.wait_minutes == 2
        assert session.state is SessionState.IDLE

        clock.advance(121)
        assert session.start().allowed is True

    def test_daily_limit_blocks_start(self, session: LearningSession, pacing: PacingLimiter) -> None:
        for _ in range(20):
            pacing.increment_session_count()

        decision = session.start()

        assert decision.allowed is False
        assert "Daily limit" in decision.message

    def test_round_cap_blocks_but_allows_finish(self, store, clock, client, handler) -> None:
        pacing = PacingLimiter(store, PacingConfig(max_rounds_per_session=2), clock=clock)
        session = LearningSession(pacing, client, system_prompt="persona")
        session.start()

        session.submit_round("one")
        session.submit_round("two")
        assert session.state is SessionState.BLOCKED

        blocked = session.submit_round("three")
        assert blocked.decision.allowed is False
        assert "2 rounds" in blocked.decision.message
        assert len(handler.requests) == 2

        session.finish()
        assert session.state is SessionState.IDLE

    def test_burst_limit_checked_before_network(self, store, clock, client, handler) -> None:
        pacing = PacingLimiter(store, PacingConfig(max_api_calls_per_minute=1), clock=clock)
        session = LearningSession(pacing, client, system_prompt="persona")
        session.start()

        assert session.submit_round("first").decision.allowed is True
        denied = session.submit_round("second")

        assert denied.decision.allowed is False
        assert denied.reply is None
        assert len(handler.requests) == 1
        assert session.state is SessionState.ACTIVE

    def test_call_recorded_even_when_server_refuses(self, session, pacing, handler) -> None:
        handler.status = 429
        handler.body = {"error": "Rate limit exceeded", "message": "Too many requests.", "retryAfter": 5}
        session.start()

        outcome = session.submit_round("hello")

        assert outcome.decision.allowed is False
        assert outcome.decision.message == "Too many requests."
        assert session.rounds == 0
        assert pacing.check_api_rate_limit().remaining == 14

    def test_misuse_raises(self, session: LearningSession) -> None:
        with pytest.raises(RuntimeError):
            session.submit_round("too early")
        with pytest.raises(RuntimeError):
            session.finish()

        session.start()
        with pytest.raises(RuntimeError):
            session.start()
