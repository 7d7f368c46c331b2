"""Rate limiting wiring for FastAPI routes.

This module binds the connection and invite limiters to the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Swap-friendly: limiters are typed against the abstract interface.
- Process-wide state: limiters are cached in-module and rebuilt only when
  their configuration changes (primarily in tests).

Strategy:
- Connection limiting: fixed window per client IP, every admission counts.
- Invite protection: check-only before an attempt; only failed invites are
  recorded, so successful invites never consume the budget.
- Telemetry: throttled requests count towards `demo_rate_limited_total`
  and invite outcomes towards `demo_invites_validated_total`.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import HTTPException, Request, status

from queue_manager_core.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from queue_manager_core.adapters.rate_limit.factory import (
    create_connection_rate_limiter,
    create_invite_rate_limiter,
)
from queue_manager_core.adapters.telemetry.base import INVITES_VALIDATED, RATE_LIMITED, AbstractTelemetry
from queue_manager_core.adapters.telemetry.factory import create_telemetry
from queue_manager_core.core.config import settings
from queue_manager_core.core.logging import fingerprint

logger = logging.getLogger(__name__)


_connection_limiter: AbstractRateLimiter | None = None
_connection_config: tuple[int, int, int] | None = None
_invite_limiter: AbstractRateLimiter | None = None
_invite_config: tuple[int, int, int] | None = None
_telemetry: AbstractTelemetry | None = None


def get_connection_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide connection limiter."""

    global _connection_limiter, _connection_config

    cfg = settings.rate_limit
    config = (cfg.connection_window_ms, cfg.connection_max, cfg.connection_cleanup_threshold)

    if _connection_limiter is None or _connection_config != config:
        _connection_limiter = create_connection_rate_limiter(
            window_ms=cfg.connection_window_ms,
            max_connections=cfg.connection_max,
            cleanup_threshold=cfg.connection_cleanup_threshold,
        )
        _connection_config = config

    return _connection_limiter


def get_invite_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide invite brute-force limiter."""

    global _invite_limiter, _invite_config

    cfg = settings.rate_limit
    config = (cfg.invite_window_ms, cfg.invite_max_attempts, cfg.invite_cleanup_threshold)

    if _invite_limiter is None or _invite_config != config:
        _invite_limiter = create_invite_rate_limiter(
            window_ms=cfg.invite_window_ms,
            max_attempts=cfg.invite_max_attempts,
            cleanup_threshold=cfg.invite_cleanup_threshold,
        )
        _invite_config = config

    return _invite_limiter


def get_rate_limit_telemetry() -> AbstractTelemetry:
    """Return the telemetry backend used for throttling and invite counters."""

    global _telemetry

    if _telemetry is None:
        _telemetry = create_telemetry()
    return _telemetry


def client_ip(request: Request) -> str:
    """Return the client address used as the rate limit key."""

    return request.client.host if request.client else "unknown"


def _rate_limited(result: RateLimitResult, *, detail: str) -> HTTPException:
    retry_after = result.retry_after or 0

    headers: dict[str, str] = {}
    if settings.rate_limit.include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        if result.reset_at_ms is not None:
            headers["X-RateLimit-Reset"] = str(result.reset_at_ms // 1000)

    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"{detail} Retry after {retry_after} seconds.",
        headers=headers or None,
    )


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing the per-IP connection limit.

    Raises:
        HTTPException: 429 Too Many Requests when the limit is exceeded.
    """

    if not settings.rate_limit.enabled:
        return

    ip = client_ip(request)
    key_hash = fingerprint(ip)
    result = get_connection_rate_limiter().check(ip)

    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "limiter": "connection",
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "limiter": "connection",
            "key_hash": key_hash,
            "limit": result.limit,
            "retry_after_s": result.retry_after,
        },
    )
    get_rate_limit_telemetry().increment(RATE_LIMITED, attributes={"limiter": "connection"})
    raise _rate_limited(result, detail="Too many connection attempts.")


def check_invite_attempt(ip: str) -> RateLimitResult:
    """Check, without counting, whether ``ip`` may try an invite.

    Raises:
        HTTPException: 429 when too many invites from ``ip`` have failed.
    """

    result = get_invite_rate_limiter().check(ip, increment=False)
    if not result.allowed:
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "limiter": "invite",
                "key_hash": fingerprint(ip),
                "limit": result.limit,
                "retry_after_s": result.retry_after,
            },
        )
        get_rate_limit_telemetry().increment(RATE_LIMITED, attributes={"limiter": "invite"})
        raise _rate_limited(result, detail="Too many failed invite attempts.")
    return result


def record_invite_failure(ip: str) -> None:
    """Charge one failed invite attempt to ``ip``."""

    get_invite_rate_limiter().record_failure(ip)
    get_rate_limit_telemetry().increment(INVITES_VALIDATED, attributes={"result": "failure"})
    logger.info(
        "rate_limit.invite_failure",
        extra={"limiter": "invite", "key_hash": fingerprint(ip)},
    )


def record_invite_success(ip: str) -> None:
    """Count a successful invite; the attempt budget is left untouched."""

    get_rate_limit_telemetry().increment(INVITES_VALIDATED, attributes={"result": "success"})
    logger.debug(
        "rate_limit.invite_success",
        extra={"limiter": "invite", "key_hash": fingerprint(ip)},
    )


def cleanup_rate_limiters() -> int:
    """Sweep expired records from every built limiter.

    Returns:
        Total number of records removed.
    """

    removed = 0
    for limiter in (_connection_limiter, _invite_limiter):
        if limiter is not None:
            removed += limiter.cleanup()
    return removed


async def run_periodic_cleanup(interval_seconds: float) -> None:
    """Sweep the limiters every ``interval_seconds`` until cancelled."""

    while True:
        await asyncio.sleep(interval_seconds)
        removed = cleanup_rate_limiters()
        logger.debug("rate_limit.periodic_cleanup", extra={"removed": removed})


def reset_rate_limiters() -> None:
    """Drop the cached limiters and telemetry backend (tests and admin tooling)."""

    global _connection_limiter, _connection_config, _invite_limiter, _invite_config, _telemetry

    _connection_limiter = None
    _connection_config = None
    _invite_limiter = None
    _invite_config = None
    _telemetry = None
