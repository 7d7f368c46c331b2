"""Session token authentication for HTTP routes.

Routes that act on behalf of an admitted session depend on
``require_session``; it reads the token header, validates signature and age
through the session service, and binds the session id to the logging
context.

Usage:
    @router.get("/sessions/current")
    async def current(session: ResolvedSession = Depends(require_session)):
        ...
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from queue_manager_core.core.config import settings
from queue_manager_core.core.errors import AuthenticationAppError
from queue_manager_core.core.logging import set_session_id
from queue_manager_core.services.session_service import (
    ResolvedSession,
    SessionService,
    get_session_service,
)

logger = logging.getLogger(__name__)


def read_session_token(request: Request) -> str | None:
    """Extract the session token from the configured header.

    Args:
        request: Incoming request.

    Returns:
        The raw token, or None when the header is absent or blank.
    """
    token = request.headers.get(settings.session.token_header)
    if token is None:
        return None
    token = token.strip()
    return token or None


async def require_session(
    request: Request,
    service: Annotated[SessionService, Depends(get_session_service)],
) -> ResolvedSession:
    """FastAPI dependency resolving the caller's session.

    Args:
        request: Incoming request (token read from its headers).
        service: Session service (injected).

    Returns:
        ResolvedSession for a valid, unexpired token.

    Raises:
        HTTPException: 403 Forbidden when the token is missing, invalid or
            expired.
    """
    token = read_session_token(request)
    if token is None:
        logger.warning(
            "auth.missing_session_token",
            extra={"header": settings.session.token_header},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing session token. Provide {settings.session.token_header} header.",
        )

    try:
        session = service.resolve(token)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc

    set_session_id(session.session_id)
    logger.debug("auth.session_resolved", extra={"age_ms": session.age_ms})
    return session
