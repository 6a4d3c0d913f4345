"""FastAPI wiring: ``Rdb`` lifespan and leaky-bucket admission control.

``build_lifespan`` creates the ``Rdb`` on startup, stores it on
``app.state.rdb`` and closes it on shutdown.  ``enforce_bucket`` returns
a per-request dependency that drips the client's bucket, exposes the
bucket status as ``x-bucket-*`` response headers and raises
``BucketFull`` when the request does not fit::

    app = FastAPI(lifespan=build_lifespan())
    register_exception_handlers(app)

    @app.post("/orders", dependencies=[Depends(enforce_bucket())])
    async def create_order(): ...
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, Response

from rdbkit.client import Rdb
from rdbkit.configs.config import AppConfig
from rdbkit.coordination import BucketConfig, BucketFull, BucketStatus

from .real_ip import get_real_ip

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_lifespan(
    config: AppConfig | None = None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Lifespan that owns one ``Rdb`` for the application's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        rdb = await Rdb.create(config)
        app.state.rdb = rdb
        logger.info("Rdb ready (adapter=%s)", rdb.config.store.adapter)
        try:
            yield
        finally:
            await rdb.aclose()

    return lifespan


def get_rdb(request: Request) -> Rdb:
    """Return the ``Rdb`` stored on ``app.state`` by the lifespan."""
    return request.app.state.rdb


# ---------------------------------------------------------------------------
# Per-request dependency
# ---------------------------------------------------------------------------


def enforce_bucket(
    scope: str = "http",
    *,
    capacity: int | None = None,
    drip_rate: float | None = None,
    costs: dict[str, int] | None = None,
) -> Callable[..., Awaitable[BucketStatus]]:
    """Build a dependency that rate-limits each client with a leaky bucket.

    The bucket key is ``{scope}:{client ip}``; the drip size is the cost
    of the lower-cased HTTP method.  Unset parameters fall back to the
    ``bucket`` section of the app config.
    """

    async def dependency(
        request: Request,
        response: Response,
        rdb: Annotated[Rdb, Depends(get_rdb)],
        real_ip: Annotated[str, Depends(get_real_ip)],
    ) -> BucketStatus:
        defaults = rdb.config.bucket
        bucket = await rdb.get_bucket(
            BucketConfig(
                key=f"{scope}:{real_ip}",
                prefix=defaults.prefix,
                capacity=capacity if capacity is not None else defaults.capacity,
                drip_rate=drip_rate if drip_rate is not None else defaults.drip_rate,
                costs=costs if costs is not None else defaults.costs,
            )
        )
        if not await bucket.drip(request.method.lower()):
            raise BucketFull(bucket)
        response.headers.update(bucket.headers())
        return bucket.get_status()

    return dependency
