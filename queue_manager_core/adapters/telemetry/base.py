"""Telemetry capability interface.

The service layer records metrics and spans through this contract only. A
backend (no-op, logging) is selected once at composition time, so call
sites never branch on whether telemetry is available.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Mapping

Attributes = Mapping[str, Any]

# Counters
SESSIONS_STARTED = "demo_sessions_started_total"
SESSIONS_ENDED = "demo_sessions_ended_total"
INVITES_VALIDATED = "demo_invites_validated_total"  # attributes: result
RATE_LIMITED = "demo_rate_limited_total"  # attributes: limiter

# Histograms
SESSION_DURATION = "demo_session_duration_seconds"


class AbstractTelemetry(ABC):
    """Interface for metric and tracing backends."""

    @abstractmethod
    def increment(self, name: str, value: int = 1, attributes: Attributes | None = None) -> None:
        """Add ``value`` to the counter ``name``."""
        raise NotImplementedError

    @abstractmethod
    def record(self, name: str, value: float, attributes: Attributes | None = None) -> None:
        """Record one observation on the histogram ``name``."""
        raise NotImplementedError

    @abstractmethod
    def span(self, name: str, attributes: Attributes | None = None) -> AbstractContextManager[Any]:
        """Return a context manager timing the enclosed block.

        Exceptions raised inside the block propagate unchanged.
        """
        raise NotImplementedError
