"""Tests for the in-process performance monitor."""

import logging

import pytest

from explain_api.core.performance import PerformanceMonitor


def test_record_and_stats() -> None:
    monitor = PerformanceMonitor()
    for duration in range(1, 101):
        monitor.record_metric("groq_api_call", float(duration))

    stats = monitor.get_stats("groq_api_call")

    assert stats["count"] == 100
    assert stats["avg_ms"] == pytest.approx(50.5)
    assert stats["min_ms"] == 1.0
    assert stats["max_ms"] == 100.0
    assert stats["p95_ms"] == 96.0
    assert stats["p99_ms"] == 100.0


def test_stats_for_unknown_operation() -> None:
    assert PerformanceMonitor().get_stats("nothing") is None


def test_single_sample_percentiles() -> None:
    monitor = PerformanceMonitor()
    monitor.record_metric("op", 12.5)

    stats = monitor.get_stats("op")

    assert stats["p95_ms"] == stats["p99_ms"] == 12.5


def test_bounded_history() -> None:
    monitor = PerformanceMonitor(max_metrics=3)
    for i in range(5):
        monitor.record_metric("op", float(i))

    assert [m.duration_ms for m in monitor.get_metrics()] == [2.0, 3.0, 4.0]


def test_measure_sync_records_errors() -> None:
    monitor = PerformanceMonitor()

    assert monitor.measure_sync("ok", lambda: 42) == 42
    with pytest.raises(ZeroDivisionError):
        monitor.measure_sync("boom", lambda: 1 / 0, {"provider": "groq"})

    failed = monitor.get_metrics("boom")[0]
    assert failed.metadata == {"provider": "groq", "error": True}
    assert monitor.get_metrics("ok")[0].metadata == {}


@pytest.mark.asyncio
async def test_measure_async() -> None:
    monitor = PerformanceMonitor()

    async def call() -> str:
        return "reply"

    assert await monitor.measure("gemini_api_call", call, {"provider": "gemini"}) == "reply"
    assert monitor.get_stats("gemini_api_call")["count"] == 1


def test_summary_and_clear() -> None:
    monitor = PerformanceMonitor()
    monitor.record_metric("b", 1.0)
    monitor.record_metric("a", 2.0)

    summary = monitor.get_summary()
    assert list(summary) == ["a", "b"]
    assert summary["a"]["count"] == 1

    monitor.clear()
    assert monitor.get_summary() == {}


def test_slow_operation_logged(caplog: pytest.LogCaptureFixture) -> None:
    monitor = PerformanceMonitor(slow_threshold_ms=100)

    with caplog.at_level(logging.WARNING, logger="explain_api.core.performance"):
        monitor.record_metric("fast", 10)
        monitor.record_metric("slow", 250)

    slow = [r for r in caplog.records if r.getMessage() == "performance.slow_operation"]
    assert len(slow) == 1
    assert slow[0].operation == "slow"
