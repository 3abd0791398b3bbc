"""Client-side pacing and HTTP access for the tutor API."""

from explain_api.client.pacing import PacingConfig, PacingDecision, PacingLimiter
from explain_api.client.session import (
    LearningSession,
    RoundOutcome,
    ServerRateLimitedError,
    SessionState,
    TutorClient,
)
from explain_api.client.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "LearningSession",
    "PacingConfig",
    "PacingDecision",
    "PacingLimiter",
    "RoundOutcome",
    "ServerRateLimitedError",
    "SessionState",
    "TutorClient",
]
