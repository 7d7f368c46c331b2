"""Tests for the non-blocking reconnection lock."""

import asyncio

import pytest

from queue_manager_core.core.reconnection_lock import ReconnectionLock


def test_starts_unlocked() -> None:
    assert ReconnectionLock().is_locked() is False


def test_acquire_and_release() -> None:
    lock = ReconnectionLock()

    assert lock.acquire() is True
    assert lock.is_locked() is True
    assert lock.acquire() is False

    lock.release()
    assert lock.is_locked() is False
    assert lock.acquire() is True


def test_release_when_free_is_noop() -> None:
    lock = ReconnectionLock()

    lock.release()

    assert lock.is_locked() is False


@pytest.mark.asyncio
async def test_with_lock_returns_result_and_releases() -> None:
    lock = ReconnectionLock()

    async def handler() -> str:
        assert lock.is_locked() is True
        return "reconnected"

    assert await lock.with_lock(handler) == "reconnected"
    assert lock.is_locked() is False


@pytest.mark.asyncio
async def test_with_lock_releases_on_error() -> None:
    lock = ReconnectionLock()

    async def handler() -> None:
        raise RuntimeError("socket closed")

    with pytest.raises(RuntimeError, match="socket closed"):
        await lock.with_lock(handler)

    assert lock.is_locked() is False


@pytest.mark.asyncio
async def test_concurrent_attempt_is_rejected_without_running() -> None:
    lock = ReconnectionLock()
    started = asyncio.Event()
    finish = asyncio.Event()
    calls: list[str] = []

    async def slow() -> str:
        calls.append("slow")
        started.set()
        await finish.wait()
        return "first"

    async def fast() -> str:
        calls.append("fast")
        return "second"

    first = asyncio.create_task(lock.with_lock(slow))
    await started.wait()

    assert await lock.with_lock(fast) is None

    finish.set()
    assert await first == "first"
    assert calls == ["slow"]
    assert lock.is_locked() is False
