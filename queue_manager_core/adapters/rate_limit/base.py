"""Rate limiter interfaces.

The HTTP layer should depend on this abstraction (not the concrete
implementation) so storage backends can be swapped with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the action is allowed to proceed.
        limit: Max attempts per window.
        remaining: Remaining attempts in the current window (0 when blocked).
        retry_after: Seconds until the window resets (only when blocked).
        reset_at_ms: UNIX milliseconds when the key's window resets, if tracked.
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after: int | None = None
    reset_at_ms: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for keyed rate limiters."""

    @abstractmethod
    def check(self, key: str, increment: bool = True) -> RateLimitResult:
        """Check (and by default count) an attempt for ``key``.

        Args:
            key: Rate limit key (e.g., client IP address).
            increment: Whether an allowed attempt consumes budget.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def record_failure(self, key: str) -> None:
        """Count a failed attempt for ``key`` regardless of the current budget."""
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Drop expired records and return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget everything recorded for ``key``."""
        raise NotImplementedError

    @abstractmethod
    def size(self) -> int:
        """Return the number of tracked keys."""
        raise NotImplementedError
