"""Prometheus metrics for the coordination primitives.

All metrics use the ``rdbkit_`` prefix and register on the default
``prometheus_client`` registry; the host application exposes them.
"""

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Mutex metrics
# ---------------------------------------------------------------------------

MUTEX_ACQUIRES_TOTAL = Counter(
    "rdbkit_mutex_acquires_total",
    "Mutex acquire calls, by mutex kind and outcome",
    ["kind", "result"],  # result: ok | contended | error
)

MUTEX_WAIT_SECONDS = Histogram(
    "rdbkit_mutex_wait_seconds",
    "Time spent inside acquire(), successful or not",
    ["kind"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 2, 5, 10, 30, 60),
)

MUTEX_RELEASES_TOTAL = Counter(
    "rdbkit_mutex_releases_total",
    "Mutex release calls, by mutex kind and outcome",
    ["kind", "result"],  # result: released | not_held
)

# ---------------------------------------------------------------------------
# Bucket metrics
# ---------------------------------------------------------------------------

BUCKET_DRIPS_TOTAL = Counter(
    "rdbkit_bucket_drips_total",
    "Leaky bucket drip attempts",
    ["result"],  # accepted | rejected
)
