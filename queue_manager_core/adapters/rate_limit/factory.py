"""Factory functions for the preconfigured rate limiters.

Connection and invite limiters are the same fixed-window limiter with
different defaults; they are conveniences, not separate types.
"""

from __future__ import annotations

from queue_manager_core.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from queue_manager_core.utils.clock import Clock, now_ms

CONNECTION_WINDOW_MS = 60 * 1000
CONNECTION_MAX = 10
CONNECTION_CLEANUP_THRESHOLD = 1000

INVITE_WINDOW_MS = 60 * 60 * 1000
INVITE_MAX_ATTEMPTS = 10
INVITE_CLEANUP_THRESHOLD = 500


def create_rate_limiter(
    *,
    window_ms: int,
    max_attempts: int,
    cleanup_threshold: int = CONNECTION_CLEANUP_THRESHOLD,
    clock: Clock = now_ms,
) -> InMemoryFixedWindowRateLimiter:
    """Create a fixed-window rate limiter.

    Example:
        >>> limiter = create_rate_limiter(window_ms=60_000, max_attempts=10)
        >>> result = limiter.check("192.168.1.1")
        >>> result.allowed
        True
    """
    return InMemoryFixedWindowRateLimiter(
        window_ms=window_ms,
        max_attempts=max_attempts,
        cleanup_threshold=cleanup_threshold,
        clock=clock,
    )


def create_connection_rate_limiter(
    *,
    window_ms: int | None = None,
    max_connections: int | None = None,
    cleanup_threshold: int | None = None,
    clock: Clock = now_ms,
) -> InMemoryFixedWindowRateLimiter:
    """Create a connection rate limiter (default: 10 connections per minute)."""
    return create_rate_limiter(
        window_ms=window_ms or CONNECTION_WINDOW_MS,
        max_attempts=max_connections or CONNECTION_MAX,
        cleanup_threshold=cleanup_threshold or CONNECTION_CLEANUP_THRESHOLD,
        clock=clock,
    )


def create_invite_rate_limiter(
    *,
    window_ms: int | None = None,
    max_attempts: int | None = None,
    cleanup_threshold: int | None = None,
    clock: Clock = now_ms,
) -> InMemoryFixedWindowRateLimiter:
    """Create an invite brute-force protection limiter (default: 10 failures per hour).

    Typically used with ``check(key, increment=False)`` before an attempt and
    ``record_failure(key)`` when the invite turns out to be invalid, so
    successful attempts do not consume the budget.
    """
    return create_rate_limiter(
        window_ms=window_ms or INVITE_WINDOW_MS,
        max_attempts=max_attempts or INVITE_MAX_ATTEMPTS,
        cleanup_threshold=cleanup_threshold or INVITE_CLEANUP_THRESHOLD,
        clock=clock,
    )
