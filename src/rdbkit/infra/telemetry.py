"""OpenTelemetry tracer and span vocabulary.

Only the API package is used here: spans are no-ops until the host
application installs a ``TracerProvider``.

Usage::

    from rdbkit.infra.telemetry import SPAN_MUTEX_ACQUIRE, tracer

    with tracer.start_as_current_span(SPAN_MUTEX_ACQUIRE) as span:
        ...
"""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.trace import format_trace_id

tracer = trace.get_tracer("rdbkit")

# ---------------------------------------------------------------------------
# Span names: single source of truth for all custom spans
# ---------------------------------------------------------------------------

SPAN_MUTEX_ACQUIRE = "mutex.acquire"
SPAN_MUTEX_RELEASE = "mutex.release"
SPAN_LOCK_ACQUIRE = "lock.acquire"
SPAN_BUCKET_DRIP = "bucket.drip"

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_MUTEX_KIND = "mutex.kind"
ATTR_MUTEX_KEYS = "mutex.keys"
ATTR_MUTEX_TIMEOUT = "mutex.timeout"
ATTR_MUTEX_ACQUIRED = "mutex.acquired"
ATTR_MUTEX_RELEASED = "mutex.released"

ATTR_LOCK_KEY = "lock.key"
ATTR_LOCK_WAIT_MS = "lock.wait_ms"
ATTR_LOCK_ACQUIRED = "lock.acquired"

ATTR_BUCKET_KEY = "bucket.key"
ATTR_BUCKET_SIZE = "bucket.size"
ATTR_BUCKET_LEVEL = "bucket.level"
ATTR_BUCKET_ACCEPTED = "bucket.accepted"


def get_current_trace_id() -> str | None:
    """Return the active trace id as 32-char hex, or ``None`` outside a span."""
    ctx = trace.get_current_span().get_span_context()
    if not ctx or not ctx.is_valid:
        return None
    return format_trace_id(ctx.trace_id)
