"""Operational endpoints: limiter snapshot, timing stats and overrides.

All routes require ``X-Admin-Key``. The monitoring snapshot is exempt from
rate limiting so operators can inspect a saturated instance.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from explain_api.adapters.rate_limit.base import AbstractRateLimiter
from explain_api.core.auth import verify_admin_key
from explain_api.core.performance import PerformanceMonitor
from explain_api.schemas.monitoring import (
    MonitoringResponse,
    OperationStats,
    RateLimitEntryView,
    RateLimitingView,
    RateLimitResetRequest,
    RateLimitResetResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Monitoring"], dependencies=[Depends(verify_admin_key)])

MAX_SNAPSHOT_ENTRIES = 50


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    return request.app.state.rate_limiter


def get_performance_monitor(request: Request) -> PerformanceMonitor:
    return request.app.state.performance_monitor


@router.get("/monitoring", response_model=MonitoringResponse)
def monitoring_snapshot(
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
) -> MonitoringResponse:
    """Read-only view of active counters and per-operation timings."""
    stats = limiter.get_stats()
    entries = [
        RateLimitEntryView(key=e.key, count=e.count, reset_time=e.reset_time)
        for e in stats.entries[:MAX_SNAPSHOT_ENTRIES]
    ]
    performance = {
        name: OperationStats(**summary) if summary else None
        for name, summary in monitor.get_summary().items()
    }
    return MonitoringResponse(
        rate_limiting=RateLimitingView(active_entries=stats.total_entries, entries=entries),
        performance=performance,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/admin/rate-limit/reset", response_model=RateLimitResetResponse)
def reset_rate_limit(
    payload: RateLimitResetRequest,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> RateLimitResetResponse:
    """Drop the counter for one (identifier, route) pair."""
    removed = limiter.reset(payload.identifier, payload.route_path)
    logger.warning("rate_limit.admin_reset", extra={"route_path": payload.route_path, "removed": removed})
    return RateLimitResetResponse(removed=int(removed))


@router.post("/admin/rate-limit/clear", response_model=RateLimitResetResponse)
def clear_rate_limits(limiter: AbstractRateLimiter = Depends(get_rate_limiter)) -> RateLimitResetResponse:
    """Drop every counter on this instance."""
    removed = limiter.clear_all()
    logger.warning("rate_limit.admin_clear_all", extra={"removed": removed})
    return RateLimitResetResponse(removed=removed)
