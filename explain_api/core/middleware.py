"""HTTP middleware for request correlation and edge rate limiting.

Usage (order matters, the last registered middleware runs first)::

    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from explain_api.core.config import RateLimitSettings, settings
from explain_api.core.logging import clear_request_id, set_request_id
from explain_api.core.rate_limit import (
    build_denial_body,
    build_rate_limit_headers,
    hash_identifier,
    identify,
)

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate a correlation ID and measure request duration.

    Reuses the incoming ``X-Request-ID`` header when present, otherwise
    generates a UUID. The ID lives in a context variable for the duration of
    the request so every log line carries it.

    Side Effects:
        - Adds X-Request-ID header to response
        - Adds X-Request-Duration-ms header to response
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def _is_rate_limited_path(path: str, cfg: RateLimitSettings) -> bool:
    return path.startswith(cfg.path_prefix) and path not in cfg.exempt_paths


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Gate every API request through the process-wide limiter.

    Runs before routing, so no handler doing paid work is reached once the
    caller is over budget. The limiter is read from ``app.state`` where the
    application factory placed it.

    A failure inside the limiter is logged and the request is let through;
    the limiter must never take the API down with it.
    """

    cfg: RateLimitSettings = getattr(request.app.state, "rate_limit_settings", settings.rate_limit)
    path = request.url.path
    if not cfg.enabled or not _is_rate_limited_path(path, cfg):
        return await call_next(request)

    identifier = identify(request)
    try:
        result = request.app.state.rate_limiter.check_limit(identifier, path)
    except Exception:
        logger.exception(
            "rate_limit.error",
            extra={"path": path, "client_hash": hash_identifier(identifier)},
        )
        return await call_next(request)

    headers = build_rate_limit_headers(result) if cfg.include_headers else {}

    if not result.allowed:
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "path": path,
                "client_hash": hash_identifier(identifier),
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        return JSONResponse(
            status_code=429,
            content=build_denial_body(result),
            headers=headers,
        )

    logger.debug(
        "rate_limit.allowed",
        extra={
            "path": path,
            "client_hash": hash_identifier(identifier),
            "limit": result.limit,
            "remaining": result.remaining,
        },
    )
    response: Response = await call_next(request)
    for name, value in headers.items():
        response.headers[name] = value
    return response
