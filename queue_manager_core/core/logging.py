"""Structured logging for the queue manager.

Log records are emitted as single-line JSON documents. Two context
variables (request id and session id) are stamped on every record written
while they are bound, and any extra field whose name marks it as secret
(tokens, signing secrets, credential maps) is replaced before the record is
formatted. Identifiers that are useful for correlation but must not appear
raw, such as client IPs, go through ``fingerprint``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from queue_manager_core.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    "request_id": _request_id_var,
    "session_id": _session_id_var,
}

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "api_key",
        "password",
        "secret",
        "session_secret",
        "token",
        "session_token",
        "x-session-token",
        "credentials",
        "env_content",
    }
)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

DEFAULT_LOG_FILE = "logs/queue-manager.log"
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def set_request_id(request_id: str | None) -> None:
    """Bind a request id to the current context."""

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def set_session_id(session_id: str | None) -> None:
    """Bind a queue session id to the current context."""

    _session_id_var.set(session_id)


def get_session_id() -> str | None:
    return _session_id_var.get()


def clear_session_id() -> None:
    _session_id_var.set(None)


def fingerprint(value: str, length: int = 16) -> str:
    """Return the first ``length`` hex digits of the SHA-256 of ``value``."""

    return hashlib.sha256(value.encode()).hexdigest()[:length]


class Redactor:
    """Replace values stored under sensitive keys, at any nesting depth.

    Key matching is case-insensitive.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        keys = SENSITIVE_KEYS_DEFAULT if sensitive_keys is None else sensitive_keys
        self.sensitive_keys = frozenset(key.lower() for key in keys)

    def is_sensitive(self, key: object) -> bool:
        return str(key).lower() in self.sensitive_keys

    def redact(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                key: REDACTED if self.is_sensitive(key) else self.redact(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.redact(item) for item in value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Return the record's ``extra`` fields with secrets replaced."""

        return {
            key: REDACTED if self.is_sensitive(key) else self.redact(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }


class CorrelationFilter(logging.Filter):
    """Copy bound context ids onto records that do not already carry them."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for name, var in _CONTEXT_VARS.items():
            if getattr(record, name, None) is None:
                value = var.get()
                if value:
                    setattr(record, name, value)
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive ``extra`` fields in place.

    Applied at the handler so plain-text output is covered as well as JSON.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self._redactor = Redactor(sensitive_keys)

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in self._redactor.extras(record).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self._redactor = Redactor(sensitive_keys)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        document: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name, var in _CONTEXT_VARS.items():
            value = getattr(record, name, None) or var.get()
            if value:
                document[name] = value

        document.update(self._redactor.extras(record))

        if record.exc_info and record.exc_info[0] is not None:
            document["exc_type"] = record.exc_info[0].__name__

        return json.dumps(document, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Return a stdout handler, or a (rotating) file handler when output=file."""

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(log_settings.file_path or DEFAULT_LOG_FILE)
    path.parent.mkdir(parents=True, exist_ok=True)

    if not log_settings.max_bytes:
        return logging.FileHandler(path, encoding="utf-8")

    return RotatingFileHandler(
        path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def _build_formatter(log_settings: LogSettings) -> logging.Formatter:
    if log_settings.format.lower() == "plain":
        return logging.Formatter(PLAIN_FORMAT)
    return JsonFormatter()


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the queue manager's handler on the root logger.

    Args:
        log_settings: Logging settings; ``settings.log`` when omitted.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(CorrelationFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(_build_formatter(cfg))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers; keep its records from being written twice.
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
