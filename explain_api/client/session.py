"""Learning session flow: pacing checks first, network call second.

A session moves ``IDLE -> ACTIVE -> (ACTIVE | BLOCKED) -> IDLE``. ``BLOCKED``
only stops further rounds; the learner can still finish and save.

Usage::

    pacing = PacingLimiter(JsonFileKeyValueStore("~/.explain/state.json"))
    with TutorClient("http://localhost:8000") as client:
        session = LearningSession(pacing, client, system_prompt=persona)
        decision = session.start()
        if decision.allowed:
            outcome = session.submit_round("Recursion is when a function calls itself")
        session.finish()
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Any

import httpx

from explain_api.client.pacing import PacingDecision, PacingLimiter
from explain_api.core.errors import AppError
from explain_api.schemas.tutor import ChatResponse, ChecklistResponse

logger = logging.getLogger(__name__)


class ServerRateLimitedError(AppError):
    """The server limiter answered 429; ``retry_after`` is in seconds."""

    @property
    def retry_after(self) -> int:
        return int((self.details or {}).get("context", {}).get("retry_after", 0))


def _parse_retry_after(value: Any) -> int | None:
    """Whole seconds from a retryAfter field or header; None if unusable.

    HTTP-date values and other non-numeric forms are treated as unusable.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = math.ceil(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return max(seconds, 0)


class TutorClient:
    """Thin synchronous HTTP client for the tutor endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = httpx.Client(base_url=base_url, timeout=timeout_seconds, transport=transport)

    def __enter__(self) -> "TutorClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = self._http.post(path, json=payload)
        if response.status_code == 429:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            retry_after = _parse_retry_after(body.get("retryAfter"))
            if retry_after is None:
                retry_after = _parse_retry_after(response.headers.get("Retry-After")) or 0
            raise ServerRateLimitedError(
                code="server_rate_limited",
                message=body.get("message") or "Too many requests. Please try again later.",
                details={"context": {"retry_after": retry_after}},
            )
        response.raise_for_status()
        return response.json()

    def chat(self, system_prompt: str, user_message: str) -> ChatResponse:
        data = self._post("/api/chat", {"system_prompt": system_prompt, "user_message": user_message})
        return ChatResponse.model_validate(data)

    def generate_checklist(self, topic: str) -> ChecklistResponse:
        return ChecklistResponse.model_validate(self._post("/api/generate-checklist", {"topic": topic}))


class SessionState(str, enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class RoundOutcome:
    decision: PacingDecision
    reply: ChatResponse | None = None


class LearningSession:
    """One learner session gated by the pacing limiter.

    Denials come back as :class:`PacingDecision` values; only misuse of the
    state machine (e.g. submitting while idle) raises.
    """

    def __init__(self, pacing: PacingLimiter, client: TutorClient, *, system_prompt: str) -> None:
        self.pacing = pacing
        self.client = client
        self.system_prompt = system_prompt
        self.state = SessionState.IDLE
        self.rounds = 0

    def start(self) -> PacingDecision:
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"cannot start a session while {self.state.value}")

        daily = self.pacing.check_daily_limit()
        if not daily.allowed:
            return daily
        cooldown = self.pacing.check_cooldown()
        if not cooldown.allowed:
            return cooldown

        self.state = SessionState.ACTIVE
        self.rounds = 0
        logger.info("session.started", extra={"sessions_left_today": daily.remaining})
        return daily

    def submit_round(self, user_message: str) -> RoundOutcome:
        """Run one explain/answer round.

        The API call is recorded when dispatched, before the response arrives,
        so failed calls still count against the burst budget.
        """
        if self.state is SessionState.IDLE:
            raise RuntimeError("start the session before submitting rounds")

        round_check = self.pacing.check_round_limit(self.rounds)
        if not round_check.allowed:
            self.state = SessionState.BLOCKED
            return RoundOutcome(decision=round_check)

        burst = self.pacing.check_api_rate_limit()
        if not burst.allowed:
            return RoundOutcome(decision=burst)

        self.pacing.record_api_call()
        try:
            reply = self.client.chat(self.system_prompt, user_message)
        except ServerRateLimitedError as exc:
            logger.info("session.server_rate_limited", extra={"retry_after_s": exc.retry_after})
            return RoundOutcome(
                decision=PacingDecision(allowed=False, remaining=round_check.remaining, message=exc.message)
            )

        self.rounds += 1
        if self.rounds >= self.pacing.config.max_rounds_per_session:
            self.state = SessionState.BLOCKED

        return RoundOutcome(
            decision=PacingDecision(allowed=True, remaining=(round_check.remaining or 0) - 1),
            reply=reply,
        )

    def finish(self) -> None:
        if self.state is SessionState.IDLE:
            raise RuntimeError("no session in progress")
        self.pacing.record_session_end()
        self.pacing.increment_session_count()
        logger.info("session.finished", extra={"rounds": self.rounds})
        self.state = SessionState.IDLE
