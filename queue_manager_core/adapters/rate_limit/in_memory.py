"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired records are dropped lazily on access, eagerly once the map grows
  past ``cleanup_threshold``, and by periodic ``cleanup()`` calls.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass

from queue_manager_core.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from queue_manager_core.core.errors import invalid_argument
from queue_manager_core.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


@dataclass
class _WindowRecord:
    count: int
    reset_at: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    A key's window starts at its first counted attempt and lasts
    ``window_ms``; the counter resets entirely once ``reset_at`` has passed
    (the key is still blocked at exactly ``reset_at``).

    Important:
        This limiter is per-process only. If the service runs with multiple
        workers, each worker will enforce its own independent limits.
    """

    def __init__(
        self,
        *,
        window_ms: int,
        max_attempts: int,
        cleanup_threshold: int = 1000,
        clock: Clock = now_ms,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            window_ms: Size of the window in milliseconds.
            max_attempts: Maximum number of attempts per window.
            cleanup_threshold: Tracked key count above which a full sweep runs.
            clock: Time source returning UNIX time in milliseconds.

        Raises:
            InvalidArgumentError: If any numeric argument is not positive.
        """
        if not window_ms or window_ms <= 0:
            raise invalid_argument("window_ms", "window_ms must be a positive number")
        if not max_attempts or max_attempts <= 0:
            raise invalid_argument("max_attempts", "max_attempts must be a positive number")
        if not cleanup_threshold or cleanup_threshold <= 0:
            raise invalid_argument("cleanup_threshold", "cleanup_threshold must be a positive number")

        self._window_ms = window_ms
        self._max_attempts = max_attempts
        self._cleanup_threshold = cleanup_threshold
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _WindowRecord] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryFixedWindowRateLimiter(window_ms={self._window_ms}, "
            f"max_attempts={self._max_attempts}, size={len(self._records)})"
        )

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def cleanup_threshold(self) -> int:
        return self._cleanup_threshold

    @staticmethod
    def _is_expired(record: _WindowRecord, now: int) -> bool:
        return now > record.reset_at

    def _sweep_locked(self, now: int) -> int:
        expired_keys = [k for k, record in self._records.items() if self._is_expired(record, now)]
        for key in expired_keys:
            del self._records[key]
        return len(expired_keys)

    def _build_blocked_result(self, *, now: int, record: _WindowRecord) -> RateLimitResult:
        """Build a RateLimitResult for a blocked attempt."""
        retry_after = max(0, math.ceil((record.reset_at - now) / 1000))
        return RateLimitResult(
            allowed=False,
            limit=self._max_attempts,
            remaining=0,
            retry_after=retry_after,
            reset_at_ms=record.reset_at,
        )

    def check(self, key: str, increment: bool = True) -> RateLimitResult:
        """Check whether an attempt is allowed for the provided key.

        Args:
            key: Rate limit key (e.g., client IP address).
            increment: When False the check is read-only; pair it with
                ``record_failure`` to only count failed attempts.

        Returns:
            RateLimitResult with allowance decision and metadata.
        """
        now = self._clock()

        with self._lock:
            existing = self._records.get(key)
            if existing is not None and self._is_expired(existing, now):
                del self._records[key]

            if len(self._records) > self._cleanup_threshold:
                removed = self._sweep_locked(now)
                logger.debug(
                    "rate_limit.sweep",
                    extra={"trigger": "threshold", "removed": removed, "size": len(self._records)},
                )

            record = self._records.get(key)

            if record is None:
                reset_at = None
                if increment:
                    reset_at = now + self._window_ms
                    self._records[key] = _WindowRecord(count=1, reset_at=reset_at)
                # Reports the post-increment budget even for read-only checks.
                return RateLimitResult(
                    allowed=True,
                    limit=self._max_attempts,
                    remaining=self._max_attempts - 1,
                    reset_at_ms=reset_at,
                )

            if record.count >= self._max_attempts:
                return self._build_blocked_result(now=now, record=record)

            if increment:
                record.count += 1

            return RateLimitResult(
                allowed=True,
                limit=self._max_attempts,
                remaining=self._max_attempts - record.count,
                reset_at_ms=record.reset_at,
            )

    def record_failure(self, key: str) -> None:
        """Record a failed attempt for the given key.

        Counts independently of ``check`` so hosts can check before an
        attempt and only charge the budget when the attempt itself fails.
        """
        now = self._clock()

        with self._lock:
            record = self._records.get(key)
            if record is None or self._is_expired(record, now):
                self._records[key] = _WindowRecord(count=1, reset_at=now + self._window_ms)
            else:
                record.count += 1

    def cleanup(self) -> int:
        """Remove expired records.

        Returns:
            Number of records removed.
        """
        now = self._clock()
        with self._lock:
            removed = self._sweep_locked(now)

        if removed:
            logger.debug(
                "rate_limit.sweep",
                extra={"trigger": "periodic", "removed": removed, "size": self.size()},
            )
        return removed

    def reset(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def size(self) -> int:
        with self._lock:
            return len(self._records)
