"""Secure session environment files.

Creates per-session ``.env`` files with owner-only permissions (0600) so
credentials can be handed to spawned containers without exposing them in
process arguments or environment variables.

Creation failures are fatal to the call; cleanup is best-effort and only
logs, so session teardown is never blocked.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from queue_manager_core.core.errors import (
    DirectoryCreateError,
    FileWriteError,
    invalid_argument,
)

logger = logging.getLogger(__name__)

ENV_FILE_MODE = 0o600


def env_file_name(session_id: str) -> str:
    """Return the file name used for a session's credential file."""

    return f"session-{session_id}.env"


def _has_value(value: Any) -> bool:
    return value is not None and value != ""


def render_env_content(credentials: Mapping[str, Any]) -> str:
    """Render credentials as ``KEY=VALUE`` lines.

    Entries with ``None`` or empty-string values are omitted. Values are
    written verbatim (no quoting or escaping). The result always ends with a
    newline, even when no entries remain.
    """

    lines = [f"{key}={value}" for key, value in credentials.items() if _has_value(value)]
    return "\n".join(lines) + "\n"


def _ensure_directory(path: str) -> None:
    try:
        Path(path).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreateError(
            code="directory_create_failed",
            message=f"Failed to create env directory: {exc.strerror or exc}",
            details={"path": path},
        ) from exc


def _write_failed(path: str, exc: OSError) -> FileWriteError:
    return FileWriteError(
        code="file_write_failed",
        message=f"Failed to write env file: {exc.strerror or exc}",
        details={"path": path},
    )


def _discard_partial_file(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.error(
            "env_file.partial_cleanup_failed",
            extra={"path": path, "error_msg": exc.strerror or str(exc)},
        )


def _write_private_file(path: str, content: str) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, ENV_FILE_MODE)
    except OSError as exc:
        raise _write_failed(path, exc) from exc

    # From here on the file exists; a failed write must not leave it behind.
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            # O_CREAT only applies the mode to new files.
            os.fchmod(handle.fileno(), ENV_FILE_MODE)
            handle.write(content)
    except OSError as exc:
        _discard_partial_file(path)
        raise _write_failed(path, exc) from exc


@dataclass
class SessionEnvFile:
    """Handle to a written session credential file.

    Attributes:
        session_id: Session the file belongs to.
        container_path: Full path of the file inside this container.
        host_path: Full path of the same file on the container host
            (for ``docker run --env-file``).
    """

    session_id: str
    container_path: str
    host_path: str
    _removed: bool = field(default=False, repr=False, compare=False)

    @property
    def removed(self) -> bool:
        return self._removed

    def cleanup(self) -> None:
        """Delete the container-side file.

        A file that is already gone counts as success; other failures are
        logged and swallowed.
        """
        try:
            os.unlink(self.container_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error(
                "env_file.cleanup_failed",
                extra={
                    "session_id": self.session_id,
                    "path": self.container_path,
                    "error_msg": exc.strerror or str(exc),
                },
            )
            return
        self._removed = True
        logger.debug("env_file.removed", extra={"session_id": self.session_id})

    close = cleanup

    def __enter__(self) -> "SessionEnvFile":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()


def create_session_env_file(
    *,
    session_id: str,
    container_path: str,
    host_path: str,
    credentials: Mapping[str, Any],
) -> SessionEnvFile:
    """Write a session credential file with mode 0600.

    Args:
        session_id: Unique session identifier.
        container_path: Directory inside this container.
        host_path: Same directory on the container host (for volume mounts).
        credentials: Key-value pairs to write; empty values are skipped.

    Returns:
        SessionEnvFile handle with resolved paths and ``cleanup()``.

    Raises:
        InvalidArgumentError: If any argument is malformed.
        DirectoryCreateError: If the directory cannot be created.
        FileWriteError: If the file cannot be written.

    Example:
        >>> env_file = create_session_env_file(
        ...     session_id="abc-123",
        ...     container_path="/run/session-env",
        ...     host_path="/tmp/session-env",
        ...     credentials={"API_TOKEN": "secret-token"},
        ... )
        >>> # docker run --env-file <env_file.host_path> ...
        >>> env_file.cleanup()
    """
    if not session_id or not isinstance(session_id, str):
        raise invalid_argument("session_id", "session_id must be a non-empty string")
    if not container_path or not isinstance(container_path, str):
        raise invalid_argument("container_path", "container_path must be a non-empty string")
    if not host_path or not isinstance(host_path, str):
        raise invalid_argument("host_path", "host_path must be a non-empty string")
    if not isinstance(credentials, Mapping):
        raise invalid_argument("credentials", "credentials must be a mapping")

    filename = env_file_name(session_id)
    full_container_path = os.path.join(container_path, filename)
    full_host_path = os.path.join(host_path, filename)

    content = render_env_content(credentials)

    _ensure_directory(container_path)
    _write_private_file(full_container_path, content)

    logger.info(
        "env_file.created",
        extra={
            "session_id": session_id,
            "path": full_container_path,
            "credential_count": sum(1 for value in credentials.values() if _has_value(value)),
        },
    )

    return SessionEnvFile(
        session_id=session_id,
        container_path=full_container_path,
        host_path=full_host_path,
    )


class EnvFileManager:
    """Tracks credential files for multiple sessions.

    Example:
        >>> manager = EnvFileManager(container_path="/run/session-env", host_path="/tmp/session-env")
        >>> env_file = manager.create("session-123", {"API_TOKEN": "secret"})
        >>> manager.cleanup("session-123")
        >>> manager.cleanup_all()
    """

    def __init__(self, *, container_path: str, host_path: str) -> None:
        if not container_path or not host_path:
            raise invalid_argument("container_path", "container_path and host_path are required")

        self._container_path = container_path
        self._host_path = host_path
        self._files: dict[str, SessionEnvFile] = {}
        self._lock = threading.RLock()

        # Creating the directory is retried by every create() call.
        try:
            Path(container_path).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning(
                "env_file.directory_unavailable",
                extra={"path": container_path, "error_msg": exc.strerror or str(exc)},
            )

    @property
    def container_path(self) -> str:
        return self._container_path

    @property
    def host_path(self) -> str:
        return self._host_path

    def create(self, session_id: str, credentials: Mapping[str, Any]) -> SessionEnvFile:
        """Write (or replace) the credential file for a session and track it."""
        with self._lock:
            if session_id in self._files:
                self.cleanup(session_id)

            env_file = create_session_env_file(
                session_id=session_id,
                container_path=self._container_path,
                host_path=self._host_path,
                credentials=credentials,
            )
            self._files[session_id] = env_file
            return env_file

    def cleanup(self, session_id: str) -> None:
        """Remove the tracked file for a session; no-op when untracked."""
        with self._lock:
            env_file = self._files.pop(session_id, None)
        if env_file is not None:
            env_file.cleanup()

    def cleanup_all(self) -> None:
        """Remove every tracked file."""
        with self._lock:
            session_ids = list(self._files)
        for session_id in session_ids:
            self.cleanup(session_id)

    def get(self, session_id: str) -> SessionEnvFile | None:
        with self._lock:
            return self._files.get(session_id)

    def size(self) -> int:
        with self._lock:
            return len(self._files)
