"""Application factory for the reference queue-manager host.

Centralizes app construction (metadata, middleware, handlers, routers,
lifespan) to keep it testable.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from queue_manager_core.api.routes import health_router, sessions_router
from queue_manager_core.core.config import settings
from queue_manager_core.core.exception_handlers import setup_exception_handlers
from queue_manager_core.core.logging import configure_logging
from queue_manager_core.core.middleware import correlation_middleware
from queue_manager_core.core.openapi import apply_openapi_customizations
from queue_manager_core.core.rate_limit import run_periodic_cleanup
from queue_manager_core.services.session_service import shutdown_session_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the periodic rate limit sweep and clean up credential files on shutdown."""

    interval = settings.rate_limit.cleanup_interval_seconds
    cleanup_task = asyncio.create_task(run_periodic_cleanup(interval))
    logger.info("app.started", extra={"cleanup_interval_s": interval})
    try:
        yield
    finally:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
        shutdown_session_service()
        logger.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Queue Manager Core",
        description=(
            "Reference host for the queue-manager security primitives: signed "
            "session tokens, per-IP connection and invite rate limiting, and "
            "per-session credential files with owner-only permissions."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(correlation_middleware)

    setup_exception_handlers(app)

    app.include_router(sessions_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
