from __future__ import annotations

from explain_api.api.routes.health import router as health_router
from explain_api.api.routes.monitoring import router as monitoring_router
from explain_api.api.routes.tutor import router as tutor_router

__all__ = ["health_router", "monitoring_router", "tutor_router"]
