"""LeakyBucket: rate limiting over a stored list of drip timestamps."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping
from typing import Annotated, Any

from pydantic import BaseModel, Field, ValidationError

from rdbkit.infra.metrics import BUCKET_DRIPS_TOTAL
from rdbkit.infra.telemetry import (
    ATTR_BUCKET_ACCEPTED,
    ATTR_BUCKET_KEY,
    ATTR_BUCKET_LEVEL,
    ATTR_BUCKET_SIZE,
    SPAN_BUCKET_DRIP,
    tracer,
)
from rdbkit.store import KeyValueStore

from .base import ConfigError

logger = logging.getLogger(__name__)


class BucketConfig(BaseModel):
    """Bucket definition.  A bare string is shorthand for ``key``."""

    key: str
    prefix: str = "drip:"
    capacity: int = Field(default=60, gt=0, description="Bucket size in drips")
    drip_rate: float = Field(default=1.0, gt=0, description="Drips leaked per second")
    costs: dict[str, Annotated[int, Field(ge=0)]] = Field(
        default_factory=dict, description="Cost name -> drip size"
    )


class BucketStatus(BaseModel):
    """Snapshot meant to be sent back to clients as headers."""

    level: str
    drip_rate: str
    wait: int


class LeakyBucket:
    """Leaky bucket rate limiter.

    Every unit of work adds one or more timestamped drips.  Drips older
    than ``period = capacity / drip_rate`` seconds have leaked out and are
    forgotten.  A drip that would overflow ``capacity`` is refused.

    State is a JSON array of timestamps at ``{prefix}{key}``.  Loading,
    checking and saving are separate store calls, so two processes
    dripping into the same bucket at the same moment can lose one of the
    updates; the limit is best-effort under that kind of race.

    Usage::

        bucket = await LeakyBucket.open(store, {"key": ip, "capacity": 10})
        if not await bucket.drip("post"):
            raise TooManyRequests(bucket.get_status())
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: BucketConfig | Mapping[str, Any] | str,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if isinstance(config, str):
            config = {"key": config}
        try:
            if not isinstance(config, BucketConfig):
                config = BucketConfig.model_validate(dict(config))
        except ValidationError as exc:
            raise ConfigError(f"Invalid bucket config: {exc}") from exc

        self.store = store
        self.config = config
        self._clock = clock
        self._drips: list[float] = []

    @classmethod
    async def open(
        cls,
        store: KeyValueStore,
        config: BucketConfig | Mapping[str, Any] | str,
        *,
        clock: Callable[[], float] = time.time,
    ) -> LeakyBucket:
        """Create a bucket and load its current drips."""
        bucket = cls(store, config, clock=clock)
        await bucket.refresh()
        return bucket

    # -----------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------

    @property
    def key(self) -> str:
        return self.config.key

    @property
    def storage_key(self) -> str:
        return f"{self.config.prefix}{self.config.key}"

    @property
    def capacity(self) -> int:
        return self.config.capacity

    @property
    def drip_rate(self) -> float:
        return self.config.drip_rate

    @property
    def costs(self) -> dict[str, int]:
        return self.config.costs

    @property
    def period(self) -> float:
        """Seconds for a full bucket to drain completely."""
        return self.capacity / self.drip_rate

    # -----------------------------------------------------------------
    # Storage
    # -----------------------------------------------------------------

    async def refresh(self) -> None:
        """Reload drips from the store and drop the ones that leaked out."""
        self._drips = self.purge(await self._load(), self._clock())

    async def _load(self) -> list[float]:
        drips = await self.store.get_json(self.storage_key)
        if not isinstance(drips, list):
            return []
        return [float(t) for t in drips if isinstance(t, (int, float))]

    async def _save(self) -> None:
        await self.store.set_json(self.storage_key, self._drips)

    def purge(self, drips: list[float], now: float) -> list[float]:
        """Return the drips that are still inside the drain window."""
        expiry = now - self.period
        return [t for t in drips if t >= expiry]

    # -----------------------------------------------------------------
    # Level
    # -----------------------------------------------------------------

    def get_level(self) -> int:
        """Number of drips currently in the bucket."""
        return len(self._drips)

    def is_full(self) -> bool:
        return self.get_level() >= self.capacity

    def get_wait(self) -> int:
        """Milliseconds until the oldest drip leaks out; 0 if not full."""
        if not self.is_full():
            return 0
        age = self._clock() - min(self._drips)
        return int(max(0.0, (self.period - age) * 1000))

    def resolve_size(self, size: int | str) -> int:
        """Turn a cost name into a drip count (unknown names cost 1)."""
        if isinstance(size, str):
            return self.costs.get(size, 1)
        if size < 0:
            raise ValueError(f"Drip size must be >= 0, got {size}")
        return size

    async def drip(self, size: int | str = 1) -> bool:
        """Record ``size`` drips, or the drips of a named cost.

        Returns:
            ``True`` when the drips were added and saved, ``False`` when the
            bucket is full or they do not fit.  A refused drip changes
            nothing, in memory or in the store.
        """
        count = self.resolve_size(size)
        with tracer.start_as_current_span(SPAN_BUCKET_DRIP) as span:
            span.set_attribute(ATTR_BUCKET_KEY, self.storage_key)
            span.set_attribute(ATTR_BUCKET_SIZE, count)

            accepted = not self.is_full() and self.get_level() + count <= self.capacity
            if accepted:
                now = self._clock()
                self._drips.extend([now] * count)
                await self._save()

            span.set_attribute(ATTR_BUCKET_ACCEPTED, accepted)
            span.set_attribute(ATTR_BUCKET_LEVEL, self.get_level())

        BUCKET_DRIPS_TOTAL.labels(result="accepted" if accepted else "rejected").inc()
        if not accepted:
            logger.debug(
                "Bucket %s refused %d drip(s) at %d/%d",
                self.storage_key,
                count,
                self.get_level(),
                self.capacity,
            )
        return accepted

    # -----------------------------------------------------------------
    # Reporting
    # -----------------------------------------------------------------

    def get_status(self) -> BucketStatus:
        return BucketStatus(
            level=f"{self.get_level()}/{self.capacity}",
            drip_rate=f"{self.drip_rate:.2f}",
            wait=self.get_wait(),
        )

    def headers(self) -> dict[str, str]:
        """Status as ``x-bucket-*`` response headers."""
        status = self.get_status()
        return {
            f"x-bucket-{name.replace('_', '-')}": str(value)
            for name, value in status.model_dump().items()
        }

    def retry_after(self) -> int:
        """Whole seconds a refused client should wait (``Retry-After``)."""
        return max(1, math.ceil(self.get_wait() / 1000))

    def __repr__(self) -> str:
        return f"LeakyBucket(key={self.storage_key!r}, level={self.get_level()}/{self.capacity})"
