"""Coordination primitives over a shared key-value store.

Four independent primitives:

1. **ExclusiveLock**: one key holding a random token with a TTL.
   ``acquire`` returns the lock or ``None``; release deletes the key only
   while it still holds the token.

2. **NamedMutex**: same guarantee behind a reusable object with
   bounded-wait ``acquire(timeout)``, ``resume()`` to re-attach to a held
   mutex, and ``async with`` support.

3. **MultiKeyMutex**: N keys taken in one atomic script, all or nothing,
   each with its own token so release verifies ownership per key.

4. **LeakyBucket**: admission control from a stored list of drip
   timestamps; no locking involved.

Contention is never an exception: acquisition and drips report ``False``
(or ``None``).  Store failures raise ``StoreUnavailable``.
"""

from rdbkit.store import RdbError, StoreUnavailable

from .base import AcquireTimeout, BaseMutex, BucketFull, ConfigError, poll_until
from .bucket import BucketConfig, BucketStatus, LeakyBucket
from .lock import ExclusiveLock
from .multi_mutex import MultiKeyMutex
from .mutex import NamedMutex

__all__ = [
    "AcquireTimeout",
    "BaseMutex",
    "BucketConfig",
    "BucketFull",
    "BucketStatus",
    "ConfigError",
    "ExclusiveLock",
    "LeakyBucket",
    "MultiKeyMutex",
    "NamedMutex",
    "RdbError",
    "StoreUnavailable",
    "poll_until",
]
