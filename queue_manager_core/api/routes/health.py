from __future__ import annotations

from fastapi import APIRouter

from queue_manager_core.core.rate_limit import get_connection_rate_limiter, get_invite_rate_limiter
from queue_manager_core.schemas.health import HealthResponse
from queue_manager_core.services.session_service import peek_session_service

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint.

    Reports liveness along with the size of the in-memory registries, which
    helps spot unbounded growth of rate limit records or leaked credential
    files.
    """

    service = peek_session_service()
    env_files = service.env_files if service is not None else None

    return HealthResponse(
        status="ok",
        connection_limiter_keys=get_connection_rate_limiter().size(),
        invite_limiter_keys=get_invite_rate_limiter().size(),
        env_files_tracked=env_files.size() if env_files is not None else 0,
    )
