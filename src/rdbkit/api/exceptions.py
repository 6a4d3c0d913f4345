"""Exception handlers for rdbkit errors surfacing through FastAPI."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rdbkit.coordination import AcquireTimeout, BucketFull
from rdbkit.infra.telemetry import get_current_trace_id
from rdbkit.store import StoreUnavailable


def register_exception_handlers(app: FastAPI) -> None:
    """Register rdbkit exception handlers on ``app``."""

    @app.exception_handler(BucketFull)
    async def handle_bucket_full(request: Request, exc: BucketFull) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={
                "detail": str(exc),
                "code": "RATE_LIMITED",
                "trace_id": get_current_trace_id(),
            },
            headers={**exc.headers, "Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(AcquireTimeout)
    async def handle_acquire_timeout(
        request: Request, exc: AcquireTimeout
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "code": "RESOURCE_LOCKED"},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(StoreUnavailable)
    async def handle_store_unavailable(
        request: Request, exc: StoreUnavailable
    ) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc), "code": "STORE_UNAVAILABLE"},
        )
