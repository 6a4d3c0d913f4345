"""Key-value store backends consumed by the coordination primitives.

Two concrete backends implement :class:`KeyValueStore`:

* Redis: distributed; multi-step operations run as Lua scripts so no
  other client can interleave between the steps.
* Local: in-process dict guarded by an ``asyncio.Lock``; the same
  scripts run as Python callables under the lock.
"""

from .base import (
    AtomicScript,
    KeyValueStore,
    RdbError,
    ScriptContext,
    StoreUnavailable,
)
from .local_backend import LocalStore
from .redis_backend import RedisStore

__all__ = [
    "AtomicScript",
    "KeyValueStore",
    "LocalStore",
    "RdbError",
    "RedisStore",
    "ScriptContext",
    "StoreUnavailable",
]
