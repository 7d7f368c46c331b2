"""Session lifecycle service.

Composes the session token codec, the credential file manager and the
telemetry backend into the operations a queue manager needs when a client
is admitted, reconnects with its token, or leaves.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Mapping

from queue_manager_core.adapters.telemetry.base import (
    SESSION_DURATION,
    SESSIONS_ENDED,
    SESSIONS_STARTED,
    AbstractTelemetry,
)
from queue_manager_core.adapters.telemetry.factory import create_telemetry
from queue_manager_core.adapters.telemetry.noop import NoopTelemetry
from queue_manager_core.core.config import settings
from queue_manager_core.core.env_file import EnvFileManager, SessionEnvFile
from queue_manager_core.core.errors import AuthenticationAppError, ConfigurationAppError
from queue_manager_core.core.logging import fingerprint
from queue_manager_core.core.session_token import (
    generate_session_token,
    validate_session_token,
)
from queue_manager_core.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartedSession:
    """A freshly admitted session."""

    session_id: str
    token: str
    issued_at_ms: int
    env_file: SessionEnvFile | None = None


@dataclass(frozen=True)
class ResolvedSession:
    """A session recovered from a valid, unexpired token."""

    session_id: str
    issued_at_ms: int
    age_ms: int


class SessionService:
    """Issue, resolve and end queue sessions.

    Attributes:
        max_age_ms: Tokens older than this are rejected by ``resolve``.
    """

    def __init__(
        self,
        *,
        secret: str,
        max_age_ms: int,
        env_files: EnvFileManager | None = None,
        credentials: Mapping[str, str | None] | None = None,
        telemetry: AbstractTelemetry | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._secret = secret
        self.max_age_ms = max_age_ms
        self._env_files = env_files
        self._credentials = dict(credentials or {})
        self._telemetry = telemetry or NoopTelemetry()
        self._clock = clock

    @property
    def env_files(self) -> EnvFileManager | None:
        return self._env_files

    def start_session(self) -> StartedSession:
        """Admit a new session: issue its token and write its credential file.

        Raises:
            EnvFileAppError: If the credential file cannot be written. No
                token is handed out in that case.
        """
        session_id = str(uuid.uuid4())

        with self._telemetry.span("session.start", {"session.id": session_id}):
            env_file = None
            if self._env_files is not None:
                env_file = self._env_files.create(session_id, self._credentials)

            issued_at = self._clock()
            token = generate_session_token(session_id, self._secret, clock=lambda: issued_at)

        self._telemetry.increment(SESSIONS_STARTED)
        logger.info(
            "session.started",
            extra={
                "session_id": session_id,
                "token_fingerprint": fingerprint(token),
                "env_file": env_file is not None,
            },
        )
        return StartedSession(
            session_id=session_id,
            token=token,
            issued_at_ms=issued_at,
            env_file=env_file,
        )

    def resolve(self, token: str) -> ResolvedSession:
        """Resolve a client-supplied token into its session.

        Raises:
            AuthenticationAppError: If the token is invalid or expired.
        """
        validation = validate_session_token(token, self._secret)
        if not validation.valid:
            logger.warning(
                "session.token_rejected",
                extra={"reason": validation.error},
            )
            raise AuthenticationAppError(
                code="invalid_session_token",
                message=validation.error,
            )

        age_ms = self._clock() - validation.timestamp
        if age_ms > self.max_age_ms:
            logger.info("session.token_expired", extra={"age_ms": age_ms})
            raise AuthenticationAppError(
                code="session_token_expired",
                message="Session token expired",
                details={"hint": "Rejoin the queue to obtain a new session token"},
            )

        return ResolvedSession(
            session_id=validation.session_id,
            issued_at_ms=validation.timestamp,
            age_ms=age_ms,
        )

    def end_session(self, session: ResolvedSession, *, reason: str = "client") -> None:
        """End a session and remove its credential file (best-effort)."""
        if self._env_files is not None:
            self._env_files.cleanup(session.session_id)

        self._telemetry.increment(SESSIONS_ENDED, attributes={"reason": reason})
        self._telemetry.record(SESSION_DURATION, session.age_ms / 1000, {"reason": reason})
        logger.info(
            "session.ended",
            extra={"session_id": session.session_id, "reason": reason, "age_ms": session.age_ms},
        )

    def close(self) -> None:
        """Remove every credential file still tracked."""
        if self._env_files is not None:
            self._env_files.cleanup_all()


_service: SessionService | None = None


def get_session_service() -> SessionService:
    """Return the process-wide session service, building it on first use.

    Raises:
        ConfigurationAppError: If no session secret is configured.
    """

    global _service

    if _service is None:
        if not settings.session.secret:
            logger.error(
                "session.secret_missing",
                extra={"reason": "session_secret_not_configured"},
            )
            raise ConfigurationAppError(
                code="session_secret_not_configured",
                message="Session tokens are unavailable: no signing secret is configured",
                details={"hint": "Set the SESSION_SECRET environment variable"},
            )

        env_files = None
        if settings.env_file.enabled:
            env_files = EnvFileManager(
                container_path=settings.env_file.container_path,
                host_path=settings.env_file.host_path,
            )

        _service = SessionService(
            secret=settings.session.secret,
            max_age_ms=settings.session.max_age_ms,
            env_files=env_files,
            credentials=settings.env_file.credentials,
            telemetry=create_telemetry(),
        )

    return _service


def peek_session_service() -> SessionService | None:
    """Return the session service if it has been built, without building it."""
    return _service


def shutdown_session_service() -> None:
    """Clean up credential files and drop the cached service."""

    global _service

    if _service is not None:
        _service.close()
        _service = None
