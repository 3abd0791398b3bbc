"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the counter store can move to Redis or another shared backend later
without touching the middleware.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RouteLimitConfig:
    """Static request ceiling for one route.

    Attributes:
        max_requests: Requests admitted per window.
        window_ms: Window length in milliseconds.
    """

    max_requests: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")


@dataclass
class RateWindowEntry:
    """Usage of one (identifier, route) pair inside its current window.

    Attributes:
        count: Requests admitted in the current window.
        reset_time: Epoch milliseconds at which the window ends.
    """

    count: int
    reset_time: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.reset_time


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single check-and-increment.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Ceiling of the route that was checked.
        remaining: Requests left in the current window (0 when blocked).
        reset_time: Epoch milliseconds when the current window resets.
        retry_after_seconds: Suggested wait in whole seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after_seconds: int | None = None


@dataclass(frozen=True)
class RateLimitStatsEntry:
    key: str
    count: int
    reset_time: int


@dataclass(frozen=True)
class RateLimitStats:
    """Point-in-time snapshot of the counter store."""

    total_entries: int
    entries: list[RateLimitStatsEntry] = field(default_factory=list)


class AbstractRateLimiter(ABC):
    """Interface for per-identifier, per-route request limiters."""

    @abstractmethod
    def check_limit(self, identifier: str, route_path: str) -> RateLimitResult:
        """Check the budget for ``(identifier, route_path)`` and consume one unit.

        Args:
            identifier: Caller identity (usually the client IP).
            route_path: Exact request path used to select the policy.

        Returns:
            RateLimitResult describing whether the request was admitted.
        """
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Evict expired entries and return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def get_stats(self) -> RateLimitStats:
        raise NotImplementedError

    @abstractmethod
    def get_status(self, identifier: str, route_path: str) -> RateWindowEntry | None:
        raise NotImplementedError

    @abstractmethod
    def reset(self, identifier: str, route_path: str) -> bool:
        """Drop the counter of one pair. Returns whether it existed."""
        raise NotImplementedError

    @abstractmethod
    def clear_all(self) -> int:
        """Drop every counter. Returns how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def config_for(self, route_path: str) -> RouteLimitConfig:
        raise NotImplementedError
