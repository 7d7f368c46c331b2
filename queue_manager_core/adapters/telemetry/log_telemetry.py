"""Telemetry backend that emits structured log events.

Useful in development and in deployments that derive metrics from logs.
Events are logged at DEBUG level except span failures, which are WARNING.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from queue_manager_core.adapters.telemetry.base import AbstractTelemetry, Attributes


class LoggingTelemetry(AbstractTelemetry):
    """Emit counters, histograms and spans as log records."""

    def __init__(self, service_name: str, logger: logging.Logger | None = None) -> None:
        self._service_name = service_name
        self._logger = logger or logging.getLogger(__name__)

    @property
    def service_name(self) -> str:
        return self._service_name

    def increment(self, name: str, value: int = 1, attributes: Attributes | None = None) -> None:
        self._logger.debug(
            "telemetry.counter",
            extra={
                "service": self._service_name,
                "metric": name,
                "value": value,
                "attributes": dict(attributes or {}),
            },
        )

    def record(self, name: str, value: float, attributes: Attributes | None = None) -> None:
        self._logger.debug(
            "telemetry.histogram",
            extra={
                "service": self._service_name,
                "metric": name,
                "value": value,
                "attributes": dict(attributes or {}),
            },
        )

    @contextmanager
    def span(self, name: str, attributes: Attributes | None = None) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self._logger.warning(
                "telemetry.span_failed",
                extra={
                    "service": self._service_name,
                    "span": name,
                    "error_type": type(exc).__name__,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    "attributes": dict(attributes or {}),
                },
            )
            raise
        self._logger.debug(
            "telemetry.span",
            extra={
                "service": self._service_name,
                "span": name,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                "attributes": dict(attributes or {}),
            },
        )
