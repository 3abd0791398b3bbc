"""In-process timing metrics for instrumented operations.

Keeps the last ``max_metrics`` samples and aggregates them on demand. The
monitoring endpoint reads :meth:`PerformanceMonitor.get_summary`.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLOW_OPERATION_MS = 1000.0


@dataclass(frozen=True)
class PerformanceMetric:
    name: str
    duration_ms: float
    timestamp: float
    metadata: dict[str, Any] = field(default_factory=dict)


class PerformanceMonitor:
    """Thread-safe bounded store of operation durations."""

    def __init__(self, max_metrics: int = 1000, slow_threshold_ms: float = SLOW_OPERATION_MS) -> None:
        self._metrics: deque[PerformanceMetric] = deque(maxlen=max_metrics)
        self._slow_threshold_ms = slow_threshold_ms
        self._lock = threading.Lock()

    async def measure(
        self,
        name: str,
        fn: Callable[[], Awaitable[T]],
        metadata: dict[str, Any] | None = None,
    ) -> T:
        """Await ``fn()`` and record its duration, flagging failures."""

        start = time.perf_counter()
        try:
            result = await fn()
        except Exception:
            self.record_metric(name, (time.perf_counter() - start) * 1000, {**(metadata or {}), "error": True})
            raise
        self.record_metric(name, (time.perf_counter() - start) * 1000, metadata)
        return result

    def measure_sync(
        self,
        name: str,
        fn: Callable[[], T],
        metadata: dict[str, Any] | None = None,
    ) -> T:
        start = time.perf_counter()
        try:
            result = fn()
        except Exception:
            self.record_metric(name, (time.perf_counter() - start) * 1000, {**(metadata or {}), "error": True})
            raise
        self.record_metric(name, (time.perf_counter() - start) * 1000, metadata)
        return result

    def record_metric(self, name: str, duration_ms: float, metadata: dict[str, Any] | None = None) -> None:
        metric = PerformanceMetric(
            name=name,
            duration_ms=duration_ms,
            timestamp=time.time(),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._metrics.append(metric)

        if duration_ms > self._slow_threshold_ms:
            logger.warning(
                "performance.slow_operation",
                extra={"operation": name, "duration_ms": round(duration_ms, 2), **metric.metadata},
            )

    def get_metrics(self, name: str | None = None) -> list[PerformanceMetric]:
        with self._lock:
            if name is None:
                return list(self._metrics)
            return [m for m in self._metrics if m.name == name]

    def get_stats(self, name: str) -> dict[str, float] | None:
        """Aggregate durations for one operation.

        Returns:
            ``count``, ``avg_ms``, ``min_ms``, ``max_ms``, ``p95_ms`` and
            ``p99_ms``, or None when nothing was recorded under ``name``.
        """

        durations = sorted(m.duration_ms for m in self.get_metrics(name))
        if not durations:
            return None

        count = len(durations)
        return {
            "count": count,
            "avg_ms": sum(durations) / count,
            "min_ms": durations[0],
            "max_ms": durations[-1],
            "p95_ms": durations[min(count - 1, int(count * 0.95))],
            "p99_ms": durations[min(count - 1, int(count * 0.99))],
        }

    def get_summary(self) -> dict[str, dict[str, float] | None]:
        names = {m.name for m in self.get_metrics()}
        return {name: self.get_stats(name) for name in sorted(names)}

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()


performance_monitor = PerformanceMonitor()
