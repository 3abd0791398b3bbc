"""Application factory for the FastAPI app.

Centralizes app construction (middleware, handlers, routers, lifespan) and
owns the lifetime of the process-wide rate limiter: it is created exactly
once here, stored on ``app.state`` and swept by a background task.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from explain_api.adapters.rate_limit.base import AbstractRateLimiter
from explain_api.api.routes import health_router, monitoring_router, tutor_router
from explain_api.core.config import RateLimitSettings, settings
from explain_api.core.exception_handlers import setup_exception_handlers
from explain_api.core.logging import configure_logging
from explain_api.core.middleware import rate_limit_middleware, request_id_middleware
from explain_api.core.openapi import apply_openapi_customizations
from explain_api.core.performance import PerformanceMonitor, performance_monitor
from explain_api.core.rate_limit import RateLimitSweeper, build_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    sweeper = RateLimitSweeper(
        app.state.rate_limiter,
        interval_seconds=app.state.rate_limit_settings.cleanup_interval_seconds,
    )
    sweeper.start()
    app.state.rate_limit_sweeper = sweeper
    logger.info("app.started", extra={"env": settings.app_env})
    try:
        yield
    finally:
        await sweeper.stop()
        logger.info("app.stopped")


def create_app(
    *,
    rate_limiter: AbstractRateLimiter | None = None,
    rate_limit_settings: RateLimitSettings | None = None,
    monitor: PerformanceMonitor | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Counter store to share across requests; built from
            settings when omitted.
        rate_limit_settings: Policy overrides, mainly for tests.
        monitor: Performance monitor; the module-level one by default.

    Returns:
        Configured FastAPI app.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    limit_cfg = rate_limit_settings or settings.rate_limit

    app = FastAPI(
        title="Explain API",
        description=(
            "Backend for a voice-first learning app: learners explain a concept "
            "out loud and get AI feedback. Proxies chat and checklist generation "
            "to LLM providers behind a per-client, per-route request limiter."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=_lifespan,
    )

    app.state.rate_limit_settings = limit_cfg
    app.state.rate_limiter = rate_limiter or build_rate_limiter(limit_cfg)
    app.state.performance_monitor = monitor or performance_monitor

    # Last registered runs first: request id wraps the limiter
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(tutor_router)
    app.include_router(monitoring_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
