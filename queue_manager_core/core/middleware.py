"""HTTP middleware for request correlation.

Every request/response pair carries a request id (taken from the incoming
header or generated), stored in contextvars for log correlation and echoed
back in the response headers together with the request duration. The
session id bound by the session token dependency is cleared afterwards so
it cannot leak into the next request handled by the same context.

Usage:
    app.middleware("http")(correlation_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from queue_manager_core.core.config import settings
from queue_manager_core.core.logging import clear_request_id, clear_session_id, set_request_id

logger = logging.getLogger(__name__)


async def correlation_middleware(request: Request, call_next) -> Response:
    """Propagate the request id and log request completion.

    Side Effects:
        - Sets request_id in contextvars for the duration of the request
        - Clears request_id and session_id once the request completes
        - Adds the request id header and X-Request-Duration-ms to the response
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request.completed",
            extra={
                "method": request.method,
                "route": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()
        clear_session_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
