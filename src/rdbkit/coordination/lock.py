"""ExclusiveLock: a key holding a token, with bounded wait and TTL."""

from __future__ import annotations

import logging
from typing import Any

from rdbkit.infra.id_utils import generate_token
from rdbkit.infra.telemetry import (
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_KEY,
    ATTR_LOCK_WAIT_MS,
    SPAN_LOCK_ACQUIRE,
    tracer,
)
from rdbkit.store import KeyValueStore

from .base import COMPARE_AND_DELETE, poll_until

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60_000


class ExclusiveLock:
    """Exclusive occupancy of one key for a bounded lifetime.

    A lock only exists once acquired; ``acquire`` returns ``None`` when the
    key stays taken.  Use it as an async context manager so it is released
    on every exit path::

        lock = await ExclusiveLock.acquire(store, "report:daily", wait_ms=500)
        if lock is None:
            return
        async with lock:
            ...

    If the owner dies without releasing, the TTL frees the key.
    """

    def __init__(self, store: KeyValueStore, key: str, token: str) -> None:
        self.store = store
        self.key = key
        self.token = token
        self._released = False

    @classmethod
    async def acquire(
        cls,
        store: KeyValueStore,
        key: str,
        wait_ms: int = 0,
        ttl_ms: int = DEFAULT_TTL_MS,
    ) -> ExclusiveLock | None:
        """Take the lock at ``key``.

        Args:
            wait_ms: how long to keep retrying while the key is taken;
                0 tries once and returns immediately.
            ttl_ms: auto-expiry of the lock key.

        Returns:
            The held lock, or ``None`` if the key is still taken.
        """
        token = generate_token()

        async def attempt() -> bool:
            return await store.set(key, token, ttl_ms, nx=True)

        with tracer.start_as_current_span(SPAN_LOCK_ACQUIRE) as span:
            span.set_attribute(ATTR_LOCK_KEY, key)
            span.set_attribute(ATTR_LOCK_WAIT_MS, wait_ms)
            ok = await poll_until(
                attempt, wait_ms / 1000, store.lock_sleep / 1000, label=f"lock {key}"
            )
            span.set_attribute(ATTR_LOCK_ACQUIRED, ok)

        if not ok:
            logger.debug("Lock %s busy", key)
            return None
        return cls(store, key, token)

    async def is_locked(self) -> bool:
        """Whether the key still holds this lock's token.

        False after ``release()``, after the TTL ran out, or when someone
        removed the key.
        """
        return await self.store.get(self.key) == self.token

    async def release(self) -> bool:
        """Delete the key if it still holds our token.  Safe to call twice."""
        if self._released:
            return False
        count = await self.store.eval(COMPARE_AND_DELETE, [self.key], [self.token])
        self._released = True
        return int(count or 0) != 0

    async def __aenter__(self) -> ExclusiveLock:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.release()

    def __repr__(self) -> str:
        return f"ExclusiveLock(key={self.key!r})"
