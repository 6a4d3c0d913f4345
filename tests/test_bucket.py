"""Tests for LeakyBucket."""

from __future__ import annotations

import pytest

from rdbkit.coordination import BucketConfig, ConfigError, LeakyBucket


async def _open(store, clock, **config) -> LeakyBucket:
    config.setdefault("key", "client")
    return await LeakyBucket.open(store, config, clock=clock)


# =========================================================================
# Filling and draining
# =========================================================================


class TestDrip:
    @pytest.mark.asyncio
    async def test_fills_to_capacity(self, store, clock):
        bucket = await _open(store, clock, capacity=5, drip_rate=1)
        for _ in range(5):
            assert await bucket.drip() is True
        assert bucket.is_full()

        assert await bucket.drip() is False
        assert bucket.get_status().level == "5/5"
        assert bucket.get_wait() == 5000

    @pytest.mark.asyncio
    async def test_drains_after_period(self, store, clock):
        bucket = await _open(store, clock, capacity=5, drip_rate=1)
        for _ in range(5):
            await bucket.drip()

        clock.advance(2)
        assert bucket.get_wait() == 3000
        clock.advance(3.5)
        await bucket.refresh()
        assert not bucket.is_full()
        assert bucket.get_level() == 0
        assert await bucket.drip(1) is True

    @pytest.mark.asyncio
    async def test_partial_drain(self, store, clock):
        bucket = await _open(store, clock, capacity=4, drip_rate=1)
        await bucket.drip(2)
        clock.advance(2)
        await bucket.drip(2)
        clock.advance(2.5)
        await bucket.refresh()
        assert bucket.get_level() == 2

    @pytest.mark.asyncio
    async def test_named_costs(self, store, clock):
        bucket = await _open(
            store, clock, capacity=10, drip_rate=1, costs={"get": 1, "post": 5}
        )
        assert await bucket.drip("get") is True
        assert await bucket.drip("get") is True
        assert await bucket.drip("post") is True
        assert bucket.get_level() == 7
        assert await bucket.drip("unknown") is True
        assert bucket.get_level() == 8

        assert await bucket.drip("post") is False
        assert bucket.get_level() == 8

    @pytest.mark.asyncio
    async def test_oversize_drip_changes_nothing(self, store, clock):
        bucket = await _open(store, clock, capacity=3, drip_rate=1)
        await bucket.drip(2)
        assert await bucket.drip(2) is False
        assert bucket.get_level() == 2
        assert len(await store.get_json("drip:client")) == 2

    @pytest.mark.asyncio
    async def test_zero_size_drip(self, store, clock):
        bucket = await _open(store, clock, capacity=3, drip_rate=1)
        assert await bucket.drip(0) is True
        assert bucket.get_level() == 0

    def test_negative_size_rejected(self, local_store, clock):
        bucket = LeakyBucket(local_store, "client", clock=clock)
        with pytest.raises(ValueError):
            bucket.resolve_size(-1)


# =========================================================================
# Persistence
# =========================================================================


class TestPersistence:
    @pytest.mark.asyncio
    async def test_state_shared_through_store(self, store, clock):
        first = await _open(store, clock, capacity=5, drip_rate=1)
        await first.drip(3)

        second = await _open(store, clock, capacity=5, drip_rate=1)
        assert second.get_level() == 3
        assert await store.get_json("drip:client") == [clock.now] * 3

    @pytest.mark.asyncio
    async def test_buckets_are_independent(self, store, clock):
        a = await _open(store, clock, key="a", capacity=2, drip_rate=1)
        b = await _open(store, clock, key="b", capacity=2, drip_rate=1)
        await a.drip(2)
        assert a.is_full()
        assert await b.drip(2) is True

    @pytest.mark.asyncio
    async def test_custom_prefix(self, store, clock):
        bucket = await _open(store, clock, prefix="rl:", capacity=5, drip_rate=1)
        await bucket.drip()
        assert bucket.storage_key == "rl:client"
        assert await store.get_json("rl:client") is not None

    @pytest.mark.asyncio
    async def test_corrupt_state_treated_as_empty(self, store, clock):
        await store.set("drip:client", '{"not": "a list"}')
        bucket = await _open(store, clock, capacity=5, drip_rate=1)
        assert bucket.get_level() == 0
        assert await bucket.drip() is True


# =========================================================================
# Configuration and reporting
# =========================================================================


class TestConfig:
    def test_string_shorthand(self, local_store):
        bucket = LeakyBucket(local_store, "client")
        assert bucket.key == "client"
        assert bucket.capacity == 60
        assert bucket.drip_rate == 1.0
        assert bucket.period == 60

    def test_config_model_accepted(self, local_store):
        config = BucketConfig(key="client", capacity=10, drip_rate=2)
        bucket = LeakyBucket(local_store, config)
        assert bucket.config is config
        assert bucket.period == 5

    @pytest.mark.parametrize(
        "config",
        [
            {"key": "c", "capacity": 0},
            {"key": "c", "capacity": -1},
            {"key": "c", "drip_rate": 0},
            {"capacity": 5},
            {"key": "c", "costs": {"post": -3}},
        ],
    )
    def test_invalid_config(self, local_store, config):
        with pytest.raises(ConfigError):
            LeakyBucket(local_store, config)

    def test_costs_validated(self, local_store):
        bucket = LeakyBucket(local_store, {"key": "c", "costs": {"free": 0, "post": 5}})
        assert bucket.resolve_size("free") == 0
        assert bucket.resolve_size("post") == 5

    def test_config_error_is_value_error(self, local_store):
        with pytest.raises(ValueError):
            LeakyBucket(local_store, {"key": "c", "capacity": 0})


class TestReporting:
    @pytest.mark.asyncio
    async def test_status_and_headers(self, store, clock):
        bucket = await _open(store, clock, capacity=2, drip_rate=0.5)
        await bucket.drip()
        status = bucket.get_status()
        assert status.level == "1/2"
        assert status.drip_rate == "0.50"
        assert status.wait == 0
        assert bucket.headers() == {
            "x-bucket-level": "1/2",
            "x-bucket-drip-rate": "0.50",
            "x-bucket-wait": "0",
        }

    @pytest.mark.asyncio
    async def test_retry_after_rounds_up(self, store, clock):
        bucket = await _open(store, clock, capacity=2, drip_rate=1)
        await bucket.drip(2)
        clock.advance(0.5)
        assert bucket.get_wait() == 1500
        assert bucket.retry_after() == 2

    @pytest.mark.asyncio
    async def test_retry_after_minimum(self, store, clock):
        bucket = await _open(store, clock, capacity=2, drip_rate=1)
        assert bucket.retry_after() == 1
