"""NamedMutex: a single named key guarded by an ownership token."""

from __future__ import annotations

from typing import Any

from rdbkit.infra.id_utils import generate_token
from rdbkit.store import KeyValueStore

from .base import COMPARE_AND_DELETE, BaseMutex


class NamedMutex(BaseMutex):
    """Mutex over the key ``{prefix}{name}``.

    Acquisition is a single ``SET NX PX`` of a fresh token.  Release runs
    a compare-and-delete script, so a mutex that expired and was taken by
    another owner is never removed by the previous holder.
    """

    kind = "mutex"

    def __init__(self, store: KeyValueStore, name: str, **options: Any) -> None:
        super().__init__(store, **options)
        self.name = name
        self._token: str | None = None

    @property
    def key(self) -> str:
        return f"{self.prefix}{self.name}"

    @property
    def keys(self) -> list[str]:
        return [self.key]

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_acquired(self) -> bool:
        return self._token is not None

    async def try_acquire(self) -> bool:
        token = generate_token()
        if await self.store.set(self.key, token, self.ttl_ms, nx=True):
            self._token = token
            return True
        return False

    async def resume(self) -> bool:
        """Join an existing mutex by adopting the token currently stored."""
        self._token = await self.store.get(self.key)
        return self._token is not None

    async def _release(self) -> bool:
        count = await self.store.eval(COMPARE_AND_DELETE, [self.key], [self._token])
        self._token = None
        return int(count or 0) != 0

    def __repr__(self) -> str:
        return f"NamedMutex(key={self.key!r}, acquired={self.is_acquired})"
