"""Single-process key-value store backed by a dict and an ``asyncio.Lock``."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Any

from .base import AtomicScript, KeyValueStore, ScriptContext


class _Keyspace(ScriptContext):
    """Dict of ``key -> (value, expires_at)`` with lazy expiry.

    ``expires_at`` is measured on ``clock`` (monotonic seconds) or ``None``
    for keys without a TTL.
    """

    def __init__(self, clock: Callable[[], float]) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ttl_ms: int = 0, *, nx: bool = False) -> bool:
        if nx and self._live(key) is not None:
            return False
        expires_at = self._clock() + ttl_ms / 1000 if ttl_ms > 0 else None
        self._data[key] = (str(value), expires_at)
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._live(key) is not None)

    def mget(self, keys: Sequence[str]) -> list[str | None]:
        return [self.get(key) for key in keys]

    def pttl(self, key: str) -> int | None:
        entry = self._live(key)
        if entry is None:
            return None
        if entry[1] is None:
            return -1
        return max(0, int((entry[1] - self._clock()) * 1000))


class LocalStore(KeyValueStore):
    """In-process store.

    Coordination only spans the tasks of one event loop, so this is
    meant for single-process deployments and tests.  Scripts run their
    ``local`` body while the store lock is held.
    """

    def __init__(
        self,
        *,
        prefix: str = "",
        lock_sleep: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(prefix=prefix, lock_sleep=lock_sleep)
        self._keyspace = _Keyspace(clock)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._keyspace.get(self._key(key))

    async def set(
        self, key: str, value: str, ttl_ms: int = 0, *, nx: bool = False
    ) -> bool:
        async with self._lock:
            return self._keyspace.set(self._key(key), value, ttl_ms, nx=nx)

    async def delete(self, *keys: str) -> int:
        async with self._lock:
            return self._keyspace.delete(*(self._key(k) for k in keys))

    async def exists(self, *keys: str) -> int:
        async with self._lock:
            return self._keyspace.exists(*(self._key(k) for k in keys))

    async def mget(self, keys: Sequence[str]) -> list[str | None]:
        async with self._lock:
            return self._keyspace.mget([self._key(k) for k in keys])

    async def ttl(self, key: str) -> int | None:
        async with self._lock:
            return self._keyspace.pttl(self._key(key))

    async def eval(
        self, script: AtomicScript, keys: Sequence[str], args: Sequence[Any]
    ) -> Any:
        # Redis hands ARGV to Lua as strings; mirror that.
        full_keys = [self._key(k) for k in keys]
        str_args = [str(a) for a in args]
        async with self._lock:
            return script.local(self._keyspace, full_keys, str_args)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass
