"""Tests for the HTTP rate limiting wiring."""

import asyncio
from contextlib import nullcontext
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from queue_manager_core.adapters.telemetry.base import (
    INVITES_VALIDATED,
    RATE_LIMITED,
    AbstractTelemetry,
)
from queue_manager_core.core import rate_limit
from queue_manager_core.core.config import settings
from queue_manager_core.core.rate_limit import (
    check_invite_attempt,
    cleanup_rate_limiters,
    client_ip,
    enforce_rate_limit,
    get_connection_rate_limiter,
    get_invite_rate_limiter,
    get_rate_limit_telemetry,
    record_invite_failure,
    record_invite_success,
    run_periodic_cleanup,
)


def _request(host: str | None = "198.51.100.4") -> MagicMock:
    request = MagicMock()
    if host is None:
        request.client = None
    else:
        request.client.host = host
    return request


@pytest.fixture
def strict_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.rate_limit, "enabled", True)
    monkeypatch.setattr(settings.rate_limit, "connection_max", 2)
    monkeypatch.setattr(settings.rate_limit, "invite_max_attempts", 2)
    monkeypatch.setattr(settings.rate_limit, "include_headers", True)


class RecordingTelemetry(AbstractTelemetry):
    """Keeps every counter increment for assertions."""

    def __init__(self) -> None:
        self.counters: list[tuple[str, int, dict]] = []

    def increment(self, name, value=1, attributes=None) -> None:
        self.counters.append((name, value, dict(attributes or {})))

    def record(self, name, value, attributes=None) -> None:
        return None

    def span(self, name, attributes=None):
        return nullcontext()


@pytest.fixture
def telemetry(monkeypatch: pytest.MonkeyPatch) -> RecordingTelemetry:
    recorder = RecordingTelemetry()
    monkeypatch.setattr(rate_limit, "_telemetry", recorder)
    return recorder


def test_client_ip_falls_back_when_unknown() -> None:
    assert client_ip(_request("203.0.113.9")) == "203.0.113.9"
    assert client_ip(_request(None)) == "unknown"


def test_limiters_are_cached_until_config_changes(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_connection_rate_limiter()
    assert get_connection_rate_limiter() is first

    monkeypatch.setattr(settings.rate_limit, "connection_max", 99)
    rebuilt = get_connection_rate_limiter()

    assert rebuilt is not first
    assert rebuilt.max_attempts == 99


class TestEnforceRateLimit:
    @pytest.mark.asyncio
    @pytest.mark.usefixtures("strict_limits")
    async def test_blocks_after_limit_with_headers(self) -> None:
        request = _request()

        await enforce_rate_limit(request)
        await enforce_rate_limit(request)

        with pytest.raises(HTTPException) as exc_info:
            await enforce_rate_limit(request)

        exc = exc_info.value
        assert exc.status_code == 429
        assert exc.detail == "Too many connection attempts. Retry after 60 seconds."
        assert exc.headers["Retry-After"] == "60"
        assert exc.headers["X-RateLimit-Limit"] == "2"
        assert exc.headers["X-RateLimit-Remaining"] == "0"
        assert int(exc.headers["X-RateLimit-Reset"]) > 0

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("strict_limits")
    async def test_clients_are_isolated(self) -> None:
        for _ in range(2):
            await enforce_rate_limit(_request("10.0.0.1"))

        await enforce_rate_limit(_request("10.0.0.2"))

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("strict_limits")
    async def test_headers_can_be_disabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "include_headers", False)
        request = _request()
        await enforce_rate_limit(request)
        await enforce_rate_limit(request)

        with pytest.raises(HTTPException) as exc_info:
            await enforce_rate_limit(request)

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers is None

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("strict_limits")
    async def test_disabled_limiting_allows_everything(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "enabled", False)

        for _ in range(10):
            await enforce_rate_limit(_request())

        assert get_connection_rate_limiter().size() == 0


@pytest.mark.usefixtures("strict_limits")
class TestInviteProtection:
    def test_check_does_not_consume_budget(self) -> None:
        for _ in range(5):
            result = check_invite_attempt("10.1.1.1")
            assert result.allowed is True

        assert get_invite_rate_limiter().size() == 0

    def test_blocks_after_recorded_failures(self) -> None:
        record_invite_failure("10.1.1.1")
        check_invite_attempt("10.1.1.1")
        record_invite_failure("10.1.1.1")

        with pytest.raises(HTTPException) as exc_info:
            check_invite_attempt("10.1.1.1")

        assert exc_info.value.status_code == 429
        assert exc_info.value.detail.startswith("Too many failed invite attempts.")
        assert exc_info.value.headers["Retry-After"] == "3600"

        assert check_invite_attempt("10.1.1.2").allowed is True


class TestCleanup:
    def test_cleanup_before_limiters_exist_is_zero(self) -> None:
        assert cleanup_rate_limiters() == 0

    def test_cleanup_sums_removed_records(self, monkeypatch: pytest.MonkeyPatch) -> None:
        connection = get_connection_rate_limiter()
        invite = get_invite_rate_limiter()
        monkeypatch.setattr(connection, "cleanup", MagicMock(return_value=3))
        monkeypatch.setattr(invite, "cleanup", MagicMock(return_value=2))

        assert cleanup_rate_limiters() == 5

    @pytest.mark.asyncio
    async def test_periodic_cleanup_runs_until_cancelled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = MagicMock(return_value=0)
        monkeypatch.setattr(rate_limit, "cleanup_rate_limiters", calls)

        task = asyncio.create_task(run_periodic_cleanup(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert calls.call_count >= 1


@pytest.mark.usefixtures("strict_limits")
class TestTelemetry:
    def test_default_backend_comes_from_settings(self) -> None:
        backend = get_rate_limit_telemetry()

        assert get_rate_limit_telemetry() is backend
        assert isinstance(backend, AbstractTelemetry)

    @pytest.mark.asyncio
    async def test_throttled_connection_is_counted(self, telemetry: RecordingTelemetry) -> None:
        request = _request()
        await enforce_rate_limit(request)
        await enforce_rate_limit(request)
        assert telemetry.counters == []

        with pytest.raises(HTTPException):
            await enforce_rate_limit(request)

        assert telemetry.counters == [(RATE_LIMITED, 1, {"limiter": "connection"})]

    def test_invite_outcomes_are_counted(self, telemetry: RecordingTelemetry) -> None:
        record_invite_success("10.2.2.2")
        record_invite_failure("10.2.2.2")
        record_invite_failure("10.2.2.2")

        with pytest.raises(HTTPException):
            check_invite_attempt("10.2.2.2")

        assert telemetry.counters == [
            (INVITES_VALIDATED, 1, {"result": "success"}),
            (INVITES_VALIDATED, 1, {"result": "failure"}),
            (INVITES_VALIDATED, 1, {"result": "failure"}),
            (RATE_LIMITED, 1, {"limiter": "invite"}),
        ]

    def test_invite_success_leaves_budget_untouched(self, telemetry: RecordingTelemetry) -> None:
        for _ in range(5):
            record_invite_success("10.3.3.3")

        assert get_invite_rate_limiter().size() == 0
        assert check_invite_attempt("10.3.3.3").allowed is True
