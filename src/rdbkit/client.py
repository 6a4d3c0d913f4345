"""``Rdb``: a store bundled with its configuration and primitive factories."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from rdbkit.configs.config import AppConfig, get_app_config
from rdbkit.coordination import (
    BucketConfig,
    ExclusiveLock,
    LeakyBucket,
    MultiKeyMutex,
    NamedMutex,
)
from rdbkit.coordination.lock import DEFAULT_TTL_MS
from rdbkit.infra.redis import build_store
from rdbkit.store import KeyValueStore


class Rdb:
    """Entry point for the coordination primitives.

    Usage::

        async with await Rdb.create() as rdb:
            lock = await rdb.lock("nightly-report", wait_ms=1000)

            async with rdb.mutex("invoice:42", acquire_timeout=5):
                ...

            bucket = await rdb.get_bucket({"key": "api:1.2.3.4", "capacity": 10})
            await bucket.drip()
    """

    def __init__(self, store: KeyValueStore, config: AppConfig | None = None) -> None:
        self.store = store
        self.config = config if config is not None else get_app_config()

    @classmethod
    async def create(cls, config: AppConfig | None = None) -> Rdb:
        """Build the configured store and wrap it."""
        if config is None:
            config = get_app_config()
        store = await build_store(config.store)
        return cls(store, config)

    @staticmethod
    def prefix(prefix: str, items: Iterable[str]) -> Iterator[str]:
        """Apply ``prefix`` to every item."""
        for item in items:
            yield f"{prefix}{item}"

    async def lock(
        self, key: str, wait_ms: int = 0, ttl_ms: int = DEFAULT_TTL_MS
    ) -> ExclusiveLock | None:
        """Take an exclusive lock, waiting up to ``wait_ms``; ``None`` if busy."""
        return await ExclusiveLock.acquire(self.store, key, wait_ms, ttl_ms)

    def _mutex_options(self, overrides: dict[str, Any]) -> dict[str, Any]:
        options = self.config.mutex.model_dump()
        options.update(overrides)
        return options

    def mutex(self, name: str, **overrides: Any) -> NamedMutex:
        """A ``NamedMutex`` with the configured defaults (not yet acquired)."""
        return NamedMutex(self.store, name, **self._mutex_options(overrides))

    def multi_mutex(self, names: Iterable[str], **overrides: Any) -> MultiKeyMutex:
        """A ``MultiKeyMutex`` with the configured defaults (not yet acquired)."""
        return MultiKeyMutex(self.store, names, **self._mutex_options(overrides))

    async def get_bucket(
        self, config: BucketConfig | Mapping[str, Any] | str
    ) -> LeakyBucket:
        """Open a leaky bucket with its drips loaded."""
        return await LeakyBucket.open(self.store, config)

    async def aclose(self) -> None:
        await self.store.aclose()

    async def __aenter__(self) -> Rdb:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
