from __future__ import annotations

from queue_manager_core.api.routes.health import router as health_router
from queue_manager_core.api.routes.sessions import router as sessions_router

__all__ = ["health_router", "sessions_router"]
