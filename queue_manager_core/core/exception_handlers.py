"""Exception handlers mapping domain errors to JSON responses.

Every error body has the shape::

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": {...}}}

``details`` is only present for client errors (4xx). Server-side failures
such as an unwritable credential directory keep their context (paths,
errno text) in the logs.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from queue_manager_core.core.errors import (
    AppError,
    AuthenticationAppError,
    ConfigurationAppError,
    EnvFileAppError,
)
from queue_manager_core.core.logging import get_request_id

logger = logging.getLogger(__name__)

# First match wins; unlisted AppErrors are treated as bad input.
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (AuthenticationAppError, 403),
    (EnvFileAppError, 500),
    (ConfigurationAppError, 500),
)


def status_code_for(exc: AppError) -> int:
    """Return the HTTP status for a domain error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an ``AppError`` (or subclass) with its mapped status code."""
    status_code = status_code_for(exc)
    is_server_error = status_code >= 500

    logger.log(
        logging.ERROR if is_server_error else logging.WARNING,
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "error_details": exc.details,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    return _error_response(
        status_code,
        exc.code,
        exc.message,
        None if is_server_error else exc.details,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the failure, answer with a generic 500."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return _error_response(
        500,
        "internal_server_error",
        "An unexpected error occurred. Please try again later.",
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the domain handler and the catch-all fallback on ``app``."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
