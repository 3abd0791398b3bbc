"""Wiring between the rate limiting adapter and the HTTP layer.

This module owns:
- Client identification from proxy headers (first match wins)
- Construction of the process-wide limiter from settings
- Response header and 429 payload building
- The periodic sweep that evicts expired counters off the request path
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Any, Callable, Protocol

from explain_api.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RouteLimitConfig,
)
from explain_api.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from explain_api.core.config import RateLimitSettings, settings

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


class _Headers(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...


class RequestLike(Protocol):
    """Anything exposing a header lookup; ``client`` is optional."""

    headers: _Headers


def _from_forwarded_for(request: RequestLike) -> str | None:
    value = request.headers.get("x-forwarded-for")
    if not value:
        return None
    return value.split(",")[0].strip() or None


def _from_real_ip(request: RequestLike) -> str | None:
    return request.headers.get("x-real-ip") or None


def _from_cdn_client_ip(request: RequestLike) -> str | None:
    # Cloudflare
    return request.headers.get("cf-connecting-ip") or None


def _from_connection(request: RequestLike) -> str | None:
    client = getattr(request, "client", None)
    host = getattr(client, "host", None) if client is not None else None
    return host or None


IDENTIFIER_EXTRACTORS: tuple[Callable[[RequestLike], str | None], ...] = (
    _from_forwarded_for,
    _from_real_ip,
    _from_cdn_client_ip,
    _from_connection,
)


def identify(request: RequestLike) -> str:
    """Derive the rate limit identifier for a request.

    Tries each extractor in priority order and returns the first non-empty
    value. Requests with no usable address share the ``"unknown"`` bucket.

    Args:
        request: Request-like object with ``headers.get`` and optional ``client``.

    Returns:
        Client identifier string.
    """

    for extractor in IDENTIFIER_EXTRACTORS:
        identifier = extractor(request)
        if identifier:
            return identifier
    return UNKNOWN_CLIENT


def hash_identifier(identifier: str) -> str:
    """Hash the identifier for logging without exposing client addresses."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


def build_rate_limiter(rate_limit_settings: RateLimitSettings | None = None) -> AbstractRateLimiter:
    """Build the process-wide limiter from the configured policy table.

    Call once per application instance and share the result.
    """

    cfg = rate_limit_settings or settings.rate_limit
    routes = {
        path: RouteLimitConfig(max_requests=policy.max_requests, window_ms=policy.window_ms)
        for path, policy in cfg.routes.items()
    }
    default = RouteLimitConfig(
        max_requests=cfg.default_max_requests,
        window_ms=cfg.default_window_ms,
    )
    logger.info(
        "rate_limit.configured",
        extra={
            "routes": {path: (c.max_requests, c.window_ms) for path, c in routes.items()},
            "default_limit": default.max_requests,
            "default_window_ms": default.window_ms,
        },
    )
    return InMemoryFixedWindowRateLimiter(routes=routes, default=default)


def build_rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Headers describing the caller's budget; ``Retry-After`` only on denial."""

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_time),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds or 0)
    return headers


def build_denial_body(result: RateLimitResult) -> dict[str, Any]:
    return {
        "error": "Rate limit exceeded",
        "message": "Too many requests. Please try again later.",
        "retryAfter": result.retry_after_seconds or 0,
    }


class RateLimitSweeper:
    """Background task evicting expired counters on a fixed interval."""

    def __init__(self, limiter: AbstractRateLimiter, interval_seconds: float) -> None:
        self._limiter = limiter
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                evicted = self._limiter.cleanup()
            except Exception:
                logger.exception("rate_limit.cleanup_failed")
                continue
            if evicted:
                logger.info("rate_limit.swept", extra={"evicted": evicted})

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
