"""MultiKeyMutex: several named keys acquired and released as one unit."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from rdbkit.infra.id_utils import generate_token
from rdbkit.store import AtomicScript, KeyValueStore, ScriptContext

from .base import BaseMutex, ConfigError

# ---------------------------------------------------------------------------
# Lua scripts
# ---------------------------------------------------------------------------

# All-or-nothing acquisition.
# KEYS = mutex keys, ARGV[1..n] = per-key tokens, ARGV[n+1] = TTL in ms (0: none).
# Returns nil when any key already exists, else the stored values.
_LUA_ACQUIRE = """
if redis.call("EXISTS", unpack(KEYS)) > 0 then
    return false
end
local ttl = tonumber(ARGV[#ARGV])
for index, key in ipairs(KEYS) do
    if ttl > 0 then
        redis.call("SET", key, ARGV[index], "NX", "PX", ttl)
    else
        redis.call("SET", key, ARGV[index], "NX")
    end
end
return redis.call("MGET", unpack(KEYS))
"""

# Token-checked release of every key.
# KEYS = mutex keys, ARGV = expected tokens aligned with KEYS ("" for none).
# Returns the number of keys deleted.
_LUA_RELEASE = """
local values = redis.call("MGET", unpack(KEYS))
local count = 0
for index, value in ipairs(values) do
    if value == ARGV[index] then
        count = count + redis.call("DEL", KEYS[index])
    end
end
return count
"""


def _acquire_local(
    ctx: ScriptContext, keys: list[str], args: list[str]
) -> list[str | None] | None:
    if ctx.exists(*keys) > 0:
        return None
    ttl = int(args[-1])
    for key, token in zip(keys, args):
        ctx.set(key, token, ttl, nx=True)
    return ctx.mget(keys)


def _release_local(ctx: ScriptContext, keys: list[str], args: list[str]) -> int:
    count = 0
    for key, value, expected in zip(keys, ctx.mget(keys), args):
        if value is not None and value == expected:
            count += ctx.delete(key)
    return count


ACQUIRE_ALL = AtomicScript("multi_mutex_acquire", _LUA_ACQUIRE, _acquire_local)
RELEASE_ALL = AtomicScript("multi_mutex_release", _LUA_RELEASE, _release_local)


class MultiKeyMutex(BaseMutex):
    """Mutex over ``{prefix}{name}`` for every name in ``names``.

    Either every key is written by this owner or none is.  Each key gets
    its own token: keys can expire independently, so release checks
    ownership key by key and tolerates a partial release.
    """

    kind = "multi_mutex"

    def __init__(
        self, store: KeyValueStore, names: Iterable[str], **options: Any
    ) -> None:
        super().__init__(store, **options)
        # Duplicate names would collide on one key; keep the first.
        self.names = list(dict.fromkeys(names))
        if not self.names:
            raise ConfigError("MultiKeyMutex needs at least one name")
        self._tokens: list[str | None] = []

    @property
    def keys(self) -> list[str]:
        return [f"{self.prefix}{name}" for name in self.names]

    @property
    def tokens(self) -> list[str | None]:
        return list(self._tokens)

    @property
    def is_acquired(self) -> bool:
        return any(token is not None for token in self._tokens)

    async def try_acquire(self) -> bool:
        keys = self.keys
        tokens = [generate_token() for _ in keys]
        values = await self.store.eval(ACQUIRE_ALL, keys, [*tokens, self.ttl_ms])
        if not values:
            return False
        self._tokens = list(values)
        return True

    async def resume(self) -> bool:
        """Adopt whatever tokens are stored now; true if any key is held."""
        self._tokens = await self.store.mget(self.keys)
        return self.is_acquired

    async def _release(self) -> bool:
        expected = [token or "" for token in self._tokens]
        count = await self.store.eval(RELEASE_ALL, self.keys, expected)
        self._tokens = []
        return int(count or 0) != 0

    def __repr__(self) -> str:
        return f"MultiKeyMutex(keys={self.keys!r}, acquired={self.is_acquired})"
