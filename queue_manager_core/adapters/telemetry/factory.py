"""Factory for telemetry backends."""

from queue_manager_core.adapters.telemetry.base import AbstractTelemetry
from queue_manager_core.adapters.telemetry.log_telemetry import LoggingTelemetry
from queue_manager_core.adapters.telemetry.noop import NoopTelemetry
from queue_manager_core.core.config import settings
from queue_manager_core.core.errors import ValidationAppError


def create_telemetry(
    backend: str | None = None,
    service_name: str | None = None,
) -> AbstractTelemetry:
    """Instantiate the telemetry backend.

    Falls back to ``settings.telemetry`` for any argument left as None.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    name = (backend or settings.telemetry.backend).lower()

    if name == "noop":
        return NoopTelemetry()

    if name == "log":
        return LoggingTelemetry(service_name or settings.telemetry.service_name)

    raise ValidationAppError(
        code="telemetry_unknown_backend",
        message=f"Unknown telemetry backend: '{name}'. Supported backends: noop, log",
        details={"backend": name},
    )
