"""Distributed key-value store backed by ``redis.asyncio``."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import NoScriptError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .base import AtomicScript, KeyValueStore, StoreUnavailable

logger = logging.getLogger(__name__)


@contextmanager
def _transport_errors(operation: str) -> Iterator[None]:
    """Translate redis-py connection failures into ``StoreUnavailable``."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as exc:
        raise StoreUnavailable(f"Redis {operation} failed: {exc}") from exc


class RedisStore(KeyValueStore):
    """Key-value store over a shared Redis client.

    Scripts are registered once with ``SCRIPT LOAD`` and executed with
    ``EVALSHA``.  If the server lost its script cache (``SCRIPT FLUSH``,
    failover) the script is loaded again and retried once.

    The client must be created with ``decode_responses=True``.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = "",
        lock_sleep: int = 5,
        owns_client: bool = True,
    ) -> None:
        super().__init__(prefix=prefix, lock_sleep=lock_sleep)
        self._redis = redis
        self._owns_client = owns_client
        self._shas: dict[str, str] = {}

    @property
    def redis(self) -> Redis:
        return self._redis

    async def get(self, key: str) -> str | None:
        with _transport_errors("GET"):
            return await self._redis.get(self._key(key))

    async def set(
        self, key: str, value: str, ttl_ms: int = 0, *, nx: bool = False
    ) -> bool:
        with _transport_errors("SET"):
            result = await self._redis.set(
                self._key(key),
                value,
                px=ttl_ms if ttl_ms > 0 else None,
                nx=nx,
            )
        return bool(result)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        with _transport_errors("DEL"):
            return int(await self._redis.delete(*(self._key(k) for k in keys)))

    async def exists(self, *keys: str) -> int:
        if not keys:
            return 0
        with _transport_errors("EXISTS"):
            return int(await self._redis.exists(*(self._key(k) for k in keys)))

    async def mget(self, keys: Sequence[str]) -> list[str | None]:
        if not keys:
            return []
        with _transport_errors("MGET"):
            return list(await self._redis.mget([self._key(k) for k in keys]))

    async def ttl(self, key: str) -> int | None:
        with _transport_errors("PTTL"):
            remaining = int(await self._redis.pttl(self._key(key)))
        # -2: missing, -1: no expiry.
        if remaining == -2:
            return None
        return remaining

    async def _script_sha(self, script: AtomicScript) -> str:
        sha = self._shas.get(script.name)
        if sha is None:
            sha = await self._redis.script_load(script.lua)
            self._shas[script.name] = sha
            logger.debug("Loaded script %s (sha=%s)", script.name, sha)
        return sha

    async def eval(
        self, script: AtomicScript, keys: Sequence[str], args: Sequence[Any]
    ) -> Any:
        full_keys = [self._key(k) for k in keys]
        with _transport_errors(f"EVALSHA {script.name}"):
            sha = await self._script_sha(script)
            try:
                return await self._redis.evalsha(
                    sha, len(full_keys), *full_keys, *args
                )
            except NoScriptError:
                logger.info("Script %s missing on server, reloading", script.name)
                self._shas.pop(script.name, None)
                sha = await self._script_sha(script)
                return await self._redis.evalsha(
                    sha, len(full_keys), *full_keys, *args
                )

    async def ping(self) -> bool:
        with _transport_errors("PING"):
            return bool(await self._redis.ping())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._redis.aclose()
