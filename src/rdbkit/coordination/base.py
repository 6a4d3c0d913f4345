"""Coordination primitives: shared mutex protocol, polling and exceptions."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, ClassVar

from rdbkit.infra.metrics import (
    MUTEX_ACQUIRES_TOTAL,
    MUTEX_RELEASES_TOTAL,
    MUTEX_WAIT_SECONDS,
)
from rdbkit.infra.telemetry import (
    ATTR_MUTEX_ACQUIRED,
    ATTR_MUTEX_KEYS,
    ATTR_MUTEX_KIND,
    ATTR_MUTEX_RELEASED,
    ATTR_MUTEX_TIMEOUT,
    SPAN_MUTEX_ACQUIRE,
    SPAN_MUTEX_RELEASE,
    tracer,
)
from rdbkit.store import AtomicScript, KeyValueStore, RdbError, ScriptContext, StoreUnavailable

if TYPE_CHECKING:
    from .bucket import LeakyBucket

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(RdbError, ValueError):
    """Raised at construction time for malformed configuration."""


class AcquireTimeout(RdbError):
    """Raised by ``async with mutex:`` when the mutex cannot be acquired."""


class BucketFull(RdbError):
    """Raised by admission control when a request does not fit a bucket."""

    def __init__(self, bucket: LeakyBucket) -> None:
        self.status = bucket.get_status()
        super().__init__(
            f"Rate limit exceeded for {bucket.key} ({self.status.level})"
        )
        self.headers = bucket.headers()
        self.retry_after = bucket.retry_after()


# ---------------------------------------------------------------------------
# Compare-and-delete script
# ---------------------------------------------------------------------------

# Delete KEYS[1] only while it still holds the caller's token.
# KEYS[1] = lock key, ARGV[1] = expected token.
# Returns 1 when deleted, 0 otherwise.
_LUA_COMPARE_AND_DELETE = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
else
    return 0
end
"""


def _compare_and_delete(ctx: ScriptContext, keys: list[str], args: list[str]) -> int:
    if ctx.get(keys[0]) == args[0]:
        return ctx.delete(keys[0])
    return 0


COMPARE_AND_DELETE = AtomicScript(
    name="compare_and_delete",
    lua=_LUA_COMPARE_AND_DELETE,
    local=_compare_and_delete,
)


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------


async def poll_until(
    attempt: Callable[[], Awaitable[bool]],
    timeout: float,
    tick: float,
    *,
    label: str = "acquire",
) -> bool:
    """Call ``attempt`` until it returns ``True`` or ``timeout`` seconds pass.

    ``timeout <= 0`` makes exactly one attempt and lets any store error
    propagate.  Otherwise attempts are spaced ``tick`` seconds apart; the
    last sleep is clipped to the time remaining, so a failing call returns
    no earlier than ``timeout`` and no later than ``timeout + tick``.

    A ``StoreUnavailable`` raised by one attempt inside the loop counts as
    a failed attempt.  If the final attempt before the deadline failed that
    way, the error is re-raised instead of reporting plain contention.
    """
    if timeout <= 0:
        return await attempt()

    deadline = time.monotonic() + timeout
    failure: StoreUnavailable | None = None
    while True:
        try:
            if await attempt():
                return True
            failure = None
        except StoreUnavailable as exc:
            logger.warning("%s attempt failed, retrying: %s", label, exc)
            failure = exc

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        await asyncio.sleep(min(tick, remaining))

    if failure is not None:
        raise failure
    return False


# ---------------------------------------------------------------------------
# Mutex protocol
# ---------------------------------------------------------------------------


class BaseMutex(ABC):
    """Acquire / poll / release protocol shared by the mutex family.

    Subclasses implement one non-blocking ``try_acquire``, ``resume`` and
    ``release``; the bounded wait, metrics and ``async with`` support live
    here.

    Usage::

        mutex = NamedMutex(store, "invoice:42")
        if await mutex.acquire(timeout=5):
            try:
                ...
            finally:
                await mutex.release()

        # or, raising AcquireTimeout on contention:
        async with NamedMutex(store, "invoice:42", acquire_timeout=5):
            ...
    """

    kind: ClassVar[str] = "mutex"

    def __init__(
        self,
        store: KeyValueStore,
        *,
        prefix: str = "mutex:",
        auto_expire: int = 60,
        auto_release: bool = True,
        acquire_timeout: float = 0.0,
    ) -> None:
        if auto_expire < 0:
            raise ConfigError(f"auto_expire must be >= 0, got {auto_expire}")
        self.store = store
        self.prefix = prefix
        self.auto_expire = auto_expire
        self.auto_release = auto_release
        self.acquire_timeout = acquire_timeout

    @property
    def ttl_ms(self) -> int:
        """Key expiry in milliseconds, 0 when keys never expire."""
        return self.auto_expire * 1000

    @property
    @abstractmethod
    def keys(self) -> list[str]:
        """Namespaced store keys guarded by this mutex."""

    @property
    @abstractmethod
    def is_acquired(self) -> bool:
        """Whether this instance holds an ownership token in memory."""

    @abstractmethod
    async def try_acquire(self) -> bool:
        """One non-blocking acquisition attempt."""

    @abstractmethod
    async def resume(self) -> bool:
        """Attach to an already-held mutex without acquiring it."""

    @abstractmethod
    async def _release(self) -> bool:
        """Token-checked release against the store."""

    async def acquire(self, timeout: float = 0) -> bool:
        """Acquire the mutex, waiting up to ``timeout`` seconds.

        ``timeout <= 0`` tries exactly once.  Contention is reported as
        ``False``; only store failures raise.
        """
        with tracer.start_as_current_span(SPAN_MUTEX_ACQUIRE) as span:
            span.set_attribute(ATTR_MUTEX_KIND, self.kind)
            span.set_attribute(ATTR_MUTEX_KEYS, self.keys)
            span.set_attribute(ATTR_MUTEX_TIMEOUT, timeout)
            start = time.monotonic()
            try:
                ok = await poll_until(
                    self.try_acquire,
                    timeout,
                    self.store.lock_sleep / 1000,
                    label=f"{self.kind} {self.keys}",
                )
            except StoreUnavailable:
                MUTEX_ACQUIRES_TOTAL.labels(kind=self.kind, result="error").inc()
                raise
            finally:
                MUTEX_WAIT_SECONDS.labels(kind=self.kind).observe(
                    time.monotonic() - start
                )
            MUTEX_ACQUIRES_TOTAL.labels(
                kind=self.kind, result="ok" if ok else "contended"
            ).inc()
            span.set_attribute(ATTR_MUTEX_ACQUIRED, ok)
            logger.debug("%s %s acquire: %s", self.kind, self.keys, ok)
            return ok

    async def release(self) -> bool:
        """Release the mutex if this instance still owns it.

        Returns ``False`` when nothing was held, or when the key expired
        and possibly belongs to someone else now; such keys are left
        untouched.
        """
        if not self.is_acquired:
            return False
        with tracer.start_as_current_span(SPAN_MUTEX_RELEASE) as span:
            span.set_attribute(ATTR_MUTEX_KIND, self.kind)
            released = await self._release()
            span.set_attribute(ATTR_MUTEX_RELEASED, released)
        MUTEX_RELEASES_TOTAL.labels(
            kind=self.kind, result="released" if released else "not_held"
        ).inc()
        if not released:
            logger.warning("%s %s expired or stolen before release", self.kind, self.keys)
        return released

    async def __aenter__(self) -> BaseMutex:
        if not await self.acquire(self.acquire_timeout):
            raise AcquireTimeout(
                f"Could not acquire {self.kind} {self.keys} "
                f"within {self.acquire_timeout}s"
            )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self.auto_release:
            await self.release()
