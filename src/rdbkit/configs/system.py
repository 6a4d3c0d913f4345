from typing import Annotated, Literal

from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """Configuration for the backing key-value store."""

    adapter: Literal["redis", "local"] = Field(
        default="redis",
        description="Store backend: shared Redis or in-process dict",
    )
    redis_uri: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URI",
    )
    prefix: str = Field(
        default="", description="Prefix applied to every key the store touches"
    )
    timeout: float = Field(
        default=5.0, gt=0, description="Connection / socket timeout in seconds"
    )
    lock_sleep: int = Field(
        default=5, ge=0, description="Poll tick for acquire loops, in milliseconds"
    )
    fallback_to_local: bool = Field(
        default=False,
        description="Use the in-process store when Redis is unreachable",
    )


class MutexConfig(BaseModel):
    """Defaults for mutexes created through ``Rdb``."""

    prefix: str = Field(default="mutex:", description="Mutex key namespace")
    auto_expire: int = Field(
        default=60, ge=0, description="Mutex TTL in seconds, 0 for no expiry"
    )
    auto_release: bool = Field(
        default=True, description="Release when leaving an ``async with`` block"
    )
    acquire_timeout: float = Field(
        default=0.0,
        ge=0,
        description="Seconds ``async with`` waits for the mutex, 0 to try once",
    )


class BucketDefaults(BaseModel):
    """Leaky bucket defaults for HTTP admission control."""

    prefix: str = Field(default="drip:", description="Bucket key namespace")
    capacity: int = Field(default=60, gt=0, description="Bucket size in drips")
    drip_rate: float = Field(
        default=1.0, gt=0, description="Drips leaked per second"
    )
    costs: dict[str, Annotated[int, Field(ge=0)]] = Field(
        default_factory=lambda: {"get": 1, "head": 1, "post": 5},
        description="Drip size per cost name (lower-cased HTTP method)",
    )


class LoggingConfig(BaseModel):
    """Logging output settings."""

    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(
        default=True, description="Emit JSON lines instead of plain text"
    )
