"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING so no .env file is loaded, and provides the environment
the settings object needs at import time.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("ENV_FILE_ENABLED", "false")
os.environ.setdefault("TELEMETRY_BACKEND", "noop")

import pytest  # noqa: E402

from queue_manager_core.core.rate_limit import reset_rate_limiters  # noqa: E402
from queue_manager_core.services import session_service  # noqa: E402


class FakeClock:
    """Deterministic millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Drop cached limiters and session service between tests."""
    reset_rate_limiters()
    session_service.shutdown_session_service()
    yield
    reset_rate_limiters()
    session_service.shutdown_session_service()
