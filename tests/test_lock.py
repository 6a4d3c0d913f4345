"""Tests for ExclusiveLock."""

from __future__ import annotations

import asyncio
import time

import pytest

from rdbkit.coordination import ExclusiveLock
from rdbkit.store import LocalStore, StoreUnavailable


class FailingEvalStore(LocalStore):
    """LocalStore whose first ``failures`` script calls raise ``StoreUnavailable``."""

    def __init__(self, failures: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failures = failures

    async def eval(self, script, keys, args):
        if self.failures > 0:
            self.failures -= 1
            raise StoreUnavailable("connection reset")
        return await super().eval(script, keys, args)


class TestExclusiveLockAcquire:
    @pytest.mark.asyncio
    async def test_acquire_free_key(self, store):
        lock = await ExclusiveLock.acquire(store, "report")
        assert lock is not None
        assert await store.get("report") == lock.token
        assert await lock.is_locked() is True

    @pytest.mark.asyncio
    async def test_default_ttl(self, store):
        await ExclusiveLock.acquire(store, "report")
        assert 59_000 < await store.ttl("report") <= 60_000

    @pytest.mark.asyncio
    async def test_custom_ttl(self, store):
        await ExclusiveLock.acquire(store, "report", ttl_ms=2_000)
        assert 1_000 < await store.ttl("report") <= 2_000

    @pytest.mark.asyncio
    async def test_taken_key_returns_none(self, store):
        holder = await ExclusiveLock.acquire(store, "report")
        start = time.monotonic()
        assert await ExclusiveLock.acquire(store, "report") is None
        assert time.monotonic() - start < 0.05
        assert await store.get("report") == holder.token

    @pytest.mark.asyncio
    async def test_wait_gives_up_after_wait_ms(self, store):
        await ExclusiveLock.acquire(store, "report")
        start = time.monotonic()
        assert await ExclusiveLock.acquire(store, "report", wait_ms=200) is None
        elapsed = time.monotonic() - start
        assert 0.2 <= elapsed < 0.35

    @pytest.mark.asyncio
    async def test_wait_succeeds_once_released(self, store):
        holder = await ExclusiveLock.acquire(store, "report")

        async def release_soon():
            await asyncio.sleep(0.1)
            await holder.release()

        task = asyncio.create_task(release_soon())
        waiter = await ExclusiveLock.acquire(store, "report", wait_ms=1_000)
        await task
        assert waiter is not None
        assert waiter.token != holder.token

    @pytest.mark.asyncio
    async def test_expired_lock_is_free(self, clock):
        store = LocalStore(clock=clock)
        await ExclusiveLock.acquire(store, "report", ttl_ms=100)
        clock.advance(0.2)
        assert await ExclusiveLock.acquire(store, "report") is not None


class TestExclusiveLockRelease:
    @pytest.mark.asyncio
    async def test_release_frees_key(self, store):
        lock = await ExclusiveLock.acquire(store, "report")
        assert await lock.release() is True
        assert await store.get("report") is None
        assert await lock.is_locked() is False

    @pytest.mark.asyncio
    async def test_double_release_is_noop(self, store):
        lock = await ExclusiveLock.acquire(store, "report")
        assert await lock.release() is True
        other = await ExclusiveLock.acquire(store, "report")
        assert await lock.release() is False
        assert await other.is_locked() is True

    @pytest.mark.asyncio
    async def test_release_after_expiry_keeps_new_owner(self, clock):
        store = LocalStore(clock=clock)
        first = await ExclusiveLock.acquire(store, "report", ttl_ms=100)
        clock.advance(0.2)
        assert await first.is_locked() is False

        second = await ExclusiveLock.acquire(store, "report")
        assert await first.release() is False
        assert await second.is_locked() is True

    @pytest.mark.asyncio
    async def test_context_manager_releases(self, store):
        lock = await ExclusiveLock.acquire(store, "report")
        with pytest.raises(RuntimeError):
            async with lock:
                raise RuntimeError("boom")
        assert await store.get("report") is None

    @pytest.mark.asyncio
    async def test_release_retried_after_store_failure(self):
        store = FailingEvalStore(failures=1)
        lock = await ExclusiveLock.acquire(store, "report")

        with pytest.raises(StoreUnavailable):
            await lock.release()
        assert await lock.is_locked() is True

        assert await lock.release() is True
        assert await store.get("report") is None
        assert await lock.release() is False
