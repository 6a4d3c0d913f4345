"""Store construction from configuration.

``build_store`` creates the configured backend.  For the Redis adapter
it verifies the connection first; when Redis is unreachable it either
raises ``StoreUnavailable`` or, with ``fallback_to_local`` enabled,
falls back to the in-process store.
"""

import logging

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from rdbkit.configs.system import StoreConfig
from rdbkit.store import KeyValueStore, LocalStore, RedisStore, StoreUnavailable

logger = logging.getLogger(__name__)


def build_redis(config: StoreConfig) -> Redis:
    """Create (but do not connect) a Redis client for ``config``."""
    return Redis.from_url(
        config.redis_uri,
        decode_responses=True,
        socket_timeout=config.timeout,
        socket_connect_timeout=config.timeout,
    )


async def build_store(config: StoreConfig) -> KeyValueStore:
    """Create the store selected by ``config.adapter``."""
    if config.adapter == "local":
        logger.info("Store: local backend (prefix=%r)", config.prefix)
        return LocalStore(prefix=config.prefix, lock_sleep=config.lock_sleep)

    client = build_redis(config)
    try:
        await client.ping()
    except (RedisConnectionError, RedisTimeoutError) as exc:
        await client.aclose()
        if not config.fallback_to_local:
            raise StoreUnavailable(
                f"Redis unreachable at {config.redis_uri}: {exc}"
            ) from exc
        logger.warning("Redis unavailable -- falling back to local store.")
        return LocalStore(prefix=config.prefix, lock_sleep=config.lock_sleep)

    logger.info(
        "Store: Redis backend (uri=%s, prefix=%r)", config.redis_uri, config.prefix
    )
    return RedisStore(client, prefix=config.prefix, lock_sleep=config.lock_sleep)
