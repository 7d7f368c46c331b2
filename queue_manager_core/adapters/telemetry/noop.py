"""Telemetry backend that discards everything."""

from __future__ import annotations

from contextlib import AbstractContextManager, nullcontext
from typing import Any

from queue_manager_core.adapters.telemetry.base import AbstractTelemetry, Attributes


class NoopTelemetry(AbstractTelemetry):
    """Default backend used when no telemetry is configured."""

    def increment(self, name: str, value: int = 1, attributes: Attributes | None = None) -> None:
        return None

    def record(self, name: str, value: float, attributes: Attributes | None = None) -> None:
        return None

    def span(self, name: str, attributes: Attributes | None = None) -> AbstractContextManager[Any]:
        return nullcontext()
