"""Key-value store contract: abstract backend, atomic scripts and exceptions."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RdbError(Exception):
    """Base class for every error raised by rdbkit."""


class StoreUnavailable(RdbError):
    """Raised when the backing store cannot be reached (network, timeout)."""


# ---------------------------------------------------------------------------
# Atomic scripts
# ---------------------------------------------------------------------------


class ScriptContext(ABC):
    """Synchronous key-space view handed to the in-process half of a script.

    Every call made through a context happens while the store holds its
    lock, so a script body is indivisible relative to other clients.
    Keys are already fully prefixed.
    """

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str, ttl_ms: int = 0, *, nx: bool = False) -> bool: ...

    @abstractmethod
    def delete(self, *keys: str) -> int: ...

    @abstractmethod
    def exists(self, *keys: str) -> int: ...

    @abstractmethod
    def mget(self, keys: Sequence[str]) -> list[str | None]: ...


LocalScript = Callable[[ScriptContext, list[str], list[str]], Any]


@dataclass(frozen=True)
class AtomicScript:
    """A multi-step read/write operation executed as one indivisible unit.

    ``lua`` is sent to Redis (``KEYS`` / ``ARGV`` conventions apply).
    ``local`` is the equivalent Python body for :class:`LocalStore`; it
    must return what the Lua script returns after Redis reply conversion
    (``false`` -> ``None``, tables -> lists, numbers -> ``int``).
    """

    name: str
    lua: str
    local: LocalScript


# ---------------------------------------------------------------------------
# Abstract store
# ---------------------------------------------------------------------------


class KeyValueStore(ABC):
    """Interface consumed by the coordination primitives.

    ``prefix`` is prepended to every key the store touches, script keys
    included.  ``lock_sleep`` is the poll tick (milliseconds) used by
    acquire loops.
    """

    def __init__(self, *, prefix: str = "", lock_sleep: int = 5) -> None:
        self.prefix = prefix
        self.lock_sleep = lock_sleep

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value at ``key`` or ``None`` when missing."""

    @abstractmethod
    async def set(
        self, key: str, value: str, ttl_ms: int = 0, *, nx: bool = False
    ) -> bool:
        """Store ``value`` at ``key``.

        Args:
            ttl_ms: expiry in milliseconds; ``<= 0`` keeps the key forever.
            nx: only write when the key does not exist.

        Returns:
            Whether the value was written.
        """

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys.  Returns how many existed."""

    @abstractmethod
    async def exists(self, *keys: str) -> int:
        """Count how many of ``keys`` exist."""

    @abstractmethod
    async def mget(self, keys: Sequence[str]) -> list[str | None]:
        """Fetch many values.  The result is aligned with ``keys``."""

    @abstractmethod
    async def ttl(self, key: str) -> int | None:
        """Remaining lifetime in milliseconds.

        ``None`` when the key is missing, ``-1`` when it never expires.
        """

    @abstractmethod
    async def eval(
        self, script: AtomicScript, keys: Sequence[str], args: Sequence[Any]
    ) -> Any:
        """Run ``script`` atomically against ``keys`` with ``args``."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check the store is reachable."""

    @abstractmethod
    async def aclose(self) -> None:
        """Release any resources held by the store."""

    async def set_json(self, key: str, value: Any, ttl_ms: int = 0) -> int:
        """Store a JSON document.  Returns the encoded length, 0 on failure."""
        encoded = json.dumps(value)
        if not await self.set(key, encoded, ttl_ms):
            return 0
        return len(encoded)

    async def get_json(self, key: str) -> Any:
        """Load a JSON document, ``None`` when the key is missing."""
        raw = await self.get(key)
        if raw is None:
            return None
        return json.loads(raw)
