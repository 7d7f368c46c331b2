"""Reconnection lock for WebSocket reconnection handling.

Only one reconnection attempt may be processed at a time. The lock never
waits: a second attempt arriving while one is in progress is rejected
immediately. Intended for a single event loop; it is not a thread lock.
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class ReconnectionLock:
    """Non-blocking single-holder lock.

    Example:
        >>> lock = ReconnectionLock()
        >>> result = await lock.with_lock(handle_reconnection)
        >>> if result is None:
        ...     print("Reconnection already in progress")
    """

    def __init__(self) -> None:
        self._locked = False

    def is_locked(self) -> bool:
        return self._locked

    def acquire(self) -> bool:
        """Take the lock if it is free.

        Returns:
            True if acquired, False if already held.
        """
        if self._locked:
            return False
        self._locked = True
        return True

    def release(self) -> None:
        """Release the lock. Releasing a free lock is a no-op."""
        self._locked = False

    async def with_lock(self, fn: Callable[[], Awaitable[T]]) -> T | None:
        """Run ``fn`` while holding the lock.

        Returns:
            The result of ``fn``, or None when the lock was already held
            (``fn`` is not called in that case).
        """
        if not self.acquire():
            return None
        try:
            return await fn()
        finally:
            self.release()
