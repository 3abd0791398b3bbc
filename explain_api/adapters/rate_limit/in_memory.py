"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: every read-modify-write happens under a single lock, so
  concurrent requests for the same key can never both pass the ceiling.
- Windows start at the first request of a key, not on clock boundaries.
  A client may therefore burst ``max_requests`` at the end of one window
  and again right after it resets.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Mapping

from explain_api.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RateLimitStats,
    RateLimitStatsEntry,
    RateWindowEntry,
    RouteLimitConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_ROUTE_CONFIG = RouteLimitConfig(max_requests=60, window_ms=60_000)


def _default_clock_ms() -> int:
    return int(time.time() * 1000)


def build_store_key(identifier: str, route_path: str) -> str:
    return f"{identifier}:{route_path}"


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping one fixed window per (identifier, route) pair.

    The instance is the counter store. Construct it once per process and hand
    the same object to every request; a fresh instance per request would
    admit everything.
    """

    def __init__(
        self,
        *,
        routes: Mapping[str, RouteLimitConfig] | None = None,
        default: RouteLimitConfig = DEFAULT_ROUTE_CONFIG,
        clock_ms: Callable[[], int] = _default_clock_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            routes: Policy per exact route path.
            default: Policy for paths missing from ``routes``.
            clock_ms: Time source returning UNIX time in milliseconds.
        """
        self._routes: dict[str, RouteLimitConfig] = dict(routes or {})
        self._default = default
        self._clock_ms = clock_ms
        self._lock = threading.RLock()
        self._store: dict[str, RateWindowEntry] = {}

    def config_for(self, route_path: str) -> RouteLimitConfig:
        return self._routes.get(route_path, self._default)

    def _allowed(self, config: RouteLimitConfig, entry: RateWindowEntry) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=config.max_requests,
            remaining=config.max_requests - entry.count,
            reset_time=entry.reset_time,
        )

    def _blocked(self, config: RouteLimitConfig, entry: RateWindowEntry, now_ms: int) -> RateLimitResult:
        retry_after = max(0, math.ceil((entry.reset_time - now_ms) / 1000))
        return RateLimitResult(
            allowed=False,
            limit=config.max_requests,
            remaining=0,
            reset_time=entry.reset_time,
            retry_after_seconds=retry_after,
        )

    def check_limit(self, identifier: str, route_path: str) -> RateLimitResult:
        """Check and consume one request for the pair.

        Raises:
            ValueError: If identifier or route_path is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")
        if not route_path:
            raise ValueError("route_path must be a non-empty string")

        config = self.config_for(route_path)
        key = build_store_key(identifier, route_path)

        with self._lock:
            now_ms = self._clock_ms()
            entry = self._store.get(key)

            if entry is None or entry.is_expired(now_ms):
                entry = RateWindowEntry(count=1, reset_time=now_ms + config.window_ms)
                self._store[key] = entry
                return self._allowed(config, entry)

            if entry.count >= config.max_requests:
                return self._blocked(config, entry, now_ms)

            entry.count += 1
            return self._allowed(config, entry)

    def cleanup(self) -> int:
        with self._lock:
            now_ms = self._clock_ms()
            expired = [key for key, entry in self._store.items() if entry.is_expired(now_ms)]
            for key in expired:
                del self._store[key]
            remaining = len(self._store)

        logger.debug(
            "rate_limit.cleanup",
            extra={"evicted": len(expired), "active_entries": remaining},
        )
        return len(expired)

    def get_stats(self) -> RateLimitStats:
        with self._lock:
            entries = [
                RateLimitStatsEntry(key=key, count=entry.count, reset_time=entry.reset_time)
                for key, entry in self._store.items()
            ]
        return RateLimitStats(total_entries=len(entries), entries=entries)

    def get_status(self, identifier: str, route_path: str) -> RateWindowEntry | None:
        with self._lock:
            entry = self._store.get(build_store_key(identifier, route_path))
            if entry is None:
                return None
            # Copy so callers cannot mutate the live counter
            return RateWindowEntry(count=entry.count, reset_time=entry.reset_time)

    def reset(self, identifier: str, route_path: str) -> bool:
        with self._lock:
            return self._store.pop(build_store_key(identifier, route_path), None) is not None

    def clear_all(self) -> int:
        with self._lock:
            removed = len(self._store)
            self._store.clear()
        return removed
