from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from queue_manager_core.core.auth import require_session
from queue_manager_core.core.rate_limit import enforce_rate_limit
from queue_manager_core.schemas.session import SessionCreatedResponse, SessionInfoResponse
from queue_manager_core.services.session_service import (
    ResolvedSession,
    SessionService,
    get_session_service,
)

router = APIRouter(tags=["Sessions"])


@router.post(
    "/sessions",
    response_model=SessionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_rate_limit)],
)
def create_session(
    service: Annotated[SessionService, Depends(get_session_service)],
) -> SessionCreatedResponse:
    """Admit a client and issue its session token.

    Rate limited per client IP. When credential files are enabled, the
    session's env file is written before the token is returned; a write
    failure aborts the admission with HTTP 500.
    """
    started = service.start_session()
    return SessionCreatedResponse(
        session_id=started.session_id,
        token=started.token,
        issued_at_ms=started.issued_at_ms,
        expires_in_ms=service.max_age_ms,
    )


@router.get("/sessions/current", response_model=SessionInfoResponse)
def get_current_session(
    session: Annotated[ResolvedSession, Depends(require_session)],
) -> SessionInfoResponse:
    """Return the session bound to the supplied token."""
    return SessionInfoResponse(
        session_id=session.session_id,
        issued_at_ms=session.issued_at_ms,
        age_ms=session.age_ms,
    )


@router.delete("/sessions/current", status_code=status.HTTP_204_NO_CONTENT)
def end_current_session(
    session: Annotated[ResolvedSession, Depends(require_session)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> None:
    """End the session and remove its credential file."""
    service.end_session(session)
