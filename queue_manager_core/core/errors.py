"""Application-level exception types.

This module defines domain errors used across the core primitives, the
service layer and the HTTP surface, enabling consistent error handling,
logging, and API responses.

Two idioms coexist on purpose:
- Malformed arguments from the host (empty session id, non-positive window)
  raise immediately (``InvalidArgumentError``).
- Untrusted data (tokens from clients, rate limit checks) never raises; those
  operations return structured results instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes flexible while encouraging
    consistent naming across the codebase.
    """

    code: str
    message: str
    hint: str
    argument: str
    path: str
    reason: str
    http_status: int
    retry_after: int
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidArgumentError(ValidationAppError, ValueError):
    """Raised when a constructor or generator receives a malformed argument."""


def invalid_argument(argument: str, message: str) -> InvalidArgumentError:
    """Build an InvalidArgumentError for the named argument."""

    return InvalidArgumentError(
        code="invalid_argument",
        message=message,
        details={"argument": argument},
    )


class AuthenticationAppError(AppError):
    """Raised when a session token is missing, invalid or expired."""


class ConfigurationAppError(AppError):
    """Raised when required runtime configuration is missing."""


class EnvFileAppError(AppError):
    """Base class for session credential file failures."""


class DirectoryCreateError(EnvFileAppError):
    """Raised when the credential file directory cannot be created."""


class FileWriteError(EnvFileAppError):
    """Raised when a credential file cannot be written."""
