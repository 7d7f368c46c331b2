"""Telemetry adapter layer - metrics and spans behind one contract."""

from queue_manager_core.adapters.telemetry.base import AbstractTelemetry
from queue_manager_core.adapters.telemetry.factory import create_telemetry
from queue_manager_core.adapters.telemetry.log_telemetry import LoggingTelemetry
from queue_manager_core.adapters.telemetry.noop import NoopTelemetry

__all__ = [
    "AbstractTelemetry",
    "LoggingTelemetry",
    "NoopTelemetry",
    "create_telemetry",
]
