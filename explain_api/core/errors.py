"""Application-level exception types.

Policy denials from the limiters are ordinary return values, never these
exceptions. The types below cover genuine failures: bad input, provider
errors, authentication and unavailable storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    max_chars: int
    actual_chars: int
    provider: str
    providers_tried: list[str]
    storage_key: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class LLMAppError(AppError):
    """Raised when every configured LLM provider failed."""


class AuthenticationAppError(AppError):
    """Raised when admin authentication fails."""


class StorageAppError(AppError):
    """Raised by a key-value store that cannot be read or written."""
