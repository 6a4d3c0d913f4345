"""Shared fixtures: stores for both backends and a controllable clock."""

from __future__ import annotations

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from rdbkit.store import KeyValueStore, LocalStore, RedisStore


class FakeClock:
    """Manually advanced clock, usable as ``clock=`` for stores and buckets."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def local_store() -> LocalStore:
    return LocalStore(lock_sleep=5)


@pytest.fixture
def redis_store() -> RedisStore:
    # One FakeServer per test keeps tests isolated.
    client = FakeRedis(server=FakeServer(), decode_responses=True)
    return RedisStore(client, lock_sleep=5)


@pytest.fixture(params=["local", "redis"])
def store(request, local_store: LocalStore, redis_store: RedisStore) -> KeyValueStore:
    """Run the test once per backend."""
    return local_store if request.param == "local" else redis_store
