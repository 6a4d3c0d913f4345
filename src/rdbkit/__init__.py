"""rdbkit: locks, mutexes and leaky buckets over a shared key-value store."""

from rdbkit.client import Rdb
from rdbkit.coordination import (
    AcquireTimeout,
    BucketConfig,
    BucketFull,
    BucketStatus,
    ConfigError,
    ExclusiveLock,
    LeakyBucket,
    MultiKeyMutex,
    NamedMutex,
)
from rdbkit.store import (
    KeyValueStore,
    LocalStore,
    RdbError,
    RedisStore,
    StoreUnavailable,
)

__all__ = [
    "AcquireTimeout",
    "BucketConfig",
    "BucketFull",
    "BucketStatus",
    "ConfigError",
    "ExclusiveLock",
    "KeyValueStore",
    "LeakyBucket",
    "LocalStore",
    "MultiKeyMutex",
    "NamedMutex",
    "Rdb",
    "RdbError",
    "RedisStore",
    "StoreUnavailable",
]
