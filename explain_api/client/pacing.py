"""Client-side pacing limiter for learning sessions.

Guards a single learner's own usage before any request is sent:

- at most ``max_sessions_per_day`` sessions per local calendar day
- at most ``max_rounds_per_session`` rounds inside one session
- a cooldown of ``cooldown_minutes`` between two sessions
- at most ``max_api_calls_per_minute`` API calls in any trailing minute

This is a courtesy layer living in client-controlled storage, not a security
boundary; the server limiter is the real enforcement point. Storage failures
therefore degrade to "no prior state" instead of blocking the learner.
"""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable

from explain_api.client.storage import InMemoryKeyValueStore, KeyValueStore
from explain_api.core.errors import StorageAppError

logger = logging.getLogger(__name__)

SESSION_COUNTS_KEY = "sessionCounts"
LAST_SESSION_END_KEY = "lastSessionEnd"
API_TIMESTAMPS_KEY = "api_timestamps"

# Returned by _read when the store itself failed, as opposed to holding nothing
_UNAVAILABLE: Any = object()


@dataclass(frozen=True)
class PacingConfig:
    max_sessions_per_day: int = 20
    max_rounds_per_session: int = 10
    cooldown_minutes: float = 2
    max_api_calls_per_minute: int = 15
    api_window_seconds: int = 60
    api_history_size: int = 20
    session_retention_days: int = 7


@dataclass(frozen=True)
class PacingDecision:
    """Outcome of a pacing check.

    Attributes:
        allowed: Whether the action may proceed.
        remaining: Budget left after this check, where the check has one.
        wait_minutes: Whole minutes to wait (cooldown denials only).
        message: Learner-facing explanation when denied.
    """

    allowed: bool
    remaining: int | None = None
    wait_minutes: int | None = None
    message: str | None = None


class PacingLimiter:
    """Multi-tier usage guard over a synchronous key-value store.

    Every check reads fresh state from the store, so several limiter
    instances over the same store agree with each other.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        config: PacingConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create a limiter.

        Args:
            store: Persistence surface; an in-memory store when omitted.
            config: Budgets; defaults match the product's standard pacing.
            clock: Returns UNIX time in seconds.
        """
        self.store = store if store is not None else InMemoryKeyValueStore()
        self.config = config or PacingConfig()
        self._clock = clock

    # -- storage helpers -------------------------------------------------

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _today(self) -> date:
        return datetime.fromtimestamp(self._clock()).date()

    def _read(self, key: str, expected: type | tuple[type, ...], default: Any) -> Any:
        """Decode one stored JSON value.

        Returns ``default`` when the key is absent or malformed (a corrupt
        backing document included), and ``_UNAVAILABLE`` when the store
        raised anything else. Any store may sit behind the interface, so every
        exception it raises counts as a storage failure.
        """
        try:
            raw = self.store.get_item(key)
        except StorageAppError as exc:
            if exc.code != "storage_corrupted":
                logger.warning(
                    "pacing.storage_read_failed",
                    exc_info=True,
                    extra={"storage_key": key, "error_msg": exc.message},
                )
                return _UNAVAILABLE
            logger.warning("pacing.storage_malformed", extra={"storage_key": key})
            return default
        except Exception as exc:
            logger.warning(
                "pacing.storage_read_failed",
                exc_info=True,
                extra={"storage_key": key, "error_msg": str(exc)},
            )
            return _UNAVAILABLE
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("pacing.storage_malformed", extra={"storage_key": key})
            return default
        # bool is an int subclass; a stored true/false is never a valid timestamp
        if not isinstance(value, expected) or isinstance(value, bool):
            logger.warning("pacing.storage_malformed", extra={"storage_key": key})
            return default
        return value

    def _write(self, key: str, value: Any) -> None:
        try:
            self.store.set_item(key, json.dumps(value))
        except Exception as exc:
            logger.warning(
                "pacing.storage_write_failed",
                exc_info=True,
                extra={"storage_key": key, "error_msg": str(exc)},
            )

    def _session_counts(self) -> dict[str, int] | None:
        """Day counts, or None when the store could not be read."""
        data = self._read(SESSION_COUNTS_KEY, dict, {})
        if data is _UNAVAILABLE:
            return None
        return {k: v for k, v in data.items() if isinstance(v, int) and not isinstance(v, bool)}

    def _api_timestamps(self) -> list[int] | None:
        """Call timestamps, or None when the store could not be read."""
        data = self._read(API_TIMESTAMPS_KEY, list, [])
        if data is _UNAVAILABLE:
            return None
        return [t for t in data if isinstance(t, (int, float)) and not isinstance(t, bool)]

    def _skip_write_back(self, key: str) -> None:
        # History that could not be read is never overwritten
        logger.warning("pacing.write_back_skipped", extra={"storage_key": key})

    def _recent(self, timestamps: list[int], now_ms: int) -> list[int]:
        window_ms = self.config.api_window_seconds * 1000
        return [t for t in timestamps if now_ms - t < window_ms]

    # -- checks ----------------------------------------------------------

    def check_daily_limit(self) -> PacingDecision:
        limit = self.config.max_sessions_per_day
        today_count = (self._session_counts() or {}).get(self._today().isoformat(), 0)

        if today_count >= limit:
            logger.info("pacing.daily_limit_reached", extra={"sessions_today": today_count, "limit": limit})
            return PacingDecision(
                allowed=False,
                remaining=0,
                message=f"Daily limit reached ({limit} sessions). Try again tomorrow!",
            )
        return PacingDecision(allowed=True, remaining=limit - today_count)

    def check_round_limit(self, current_rounds: int) -> PacingDecision:
        limit = self.config.max_rounds_per_session
        if current_rounds >= limit:
            return PacingDecision(
                allowed=False,
                remaining=0,
                message=f"Session limit reached ({limit} rounds). Time to wrap up!",
            )
        return PacingDecision(allowed=True, remaining=limit - current_rounds)

    def check_cooldown(self) -> PacingDecision:
        """Deny a new session until the cooldown since the last one has passed.

        The wait is reported in whole minutes, rounded up.
        """
        last_end = self._read(LAST_SESSION_END_KEY, (int, float), None)
        if last_end is None or last_end is _UNAVAILABLE:
            return PacingDecision(allowed=True)

        cooldown = self.config.cooldown_minutes
        elapsed_minutes = (self._now_ms() - last_end) / 1000 / 60
        if elapsed_minutes >= cooldown:
            return PacingDecision(allowed=True)

        wait_minutes = math.ceil(cooldown - elapsed_minutes)
        logger.info("pacing.cooldown_active", extra={"wait_minutes": wait_minutes})
        plural = "s" if wait_minutes > 1 else ""
        return PacingDecision(
            allowed=False,
            wait_minutes=wait_minutes,
            message=f"Please wait {wait_minutes} minute{plural} before starting a new session. Take a break!",
        )

    def check_api_rate_limit(self) -> PacingDecision:
        """Sliding-window burst check over recorded API call timestamps.

        Expired timestamps are written back immediately so storage does not
        grow while the learner is idle.
        """
        now_ms = self._now_ms()
        timestamps = self._api_timestamps()
        recent = self._recent(timestamps or [], now_ms)
        if timestamps is not None and len(recent) != len(timestamps):
            self._write(API_TIMESTAMPS_KEY, recent)

        limit = self.config.max_api_calls_per_minute
        if len(recent) >= limit:
            logger.info("pacing.api_burst_blocked", extra={"recent_calls": len(recent), "limit": limit})
            return PacingDecision(
                allowed=False,
                remaining=0,
                message="Whoa, slow down! You're talking too fast for the AI.",
            )
        return PacingDecision(allowed=True, remaining=limit - len(recent))

    # -- recorders -------------------------------------------------------

    def record_api_call(self) -> None:
        """Remember a dispatched call; only the newest entries are kept."""
        timestamps = self._api_timestamps()
        if timestamps is None:
            self._skip_write_back(API_TIMESTAMPS_KEY)
            return
        timestamps.append(self._now_ms())
        self._write(API_TIMESTAMPS_KEY, timestamps[-self.config.api_history_size:])

    def increment_session_count(self) -> None:
        counts = self._session_counts()
        if counts is None:
            self._skip_write_back(SESSION_COUNTS_KEY)
            return
        today = self._today().isoformat()
        counts[today] = counts.get(today, 0) + 1
        self._write(SESSION_COUNTS_KEY, counts)

    def record_session_end(self) -> None:
        self._write(LAST_SESSION_END_KEY, self._now_ms())

    def cleanup(self) -> None:
        """Drop day counts past retention and expired API timestamps.

        Meant to run at application start, not before every check.
        """
        counts = self._session_counts()
        if counts is None:
            self._skip_write_back(SESSION_COUNTS_KEY)
        else:
            cutoff = self._today() - timedelta(days=self.config.session_retention_days)
            kept: dict[str, int] = {}
            for day, count in counts.items():
                try:
                    parsed = date.fromisoformat(day)
                except ValueError:
                    continue
                if parsed > cutoff:
                    kept[day] = count
            self._write(SESSION_COUNTS_KEY, kept)

        timestamps = self._api_timestamps()
        if timestamps is None:
            self._skip_write_back(API_TIMESTAMPS_KEY)
        else:
            self._write(API_TIMESTAMPS_KEY, self._recent(timestamps, self._now_ms()))
