"""Client IP extraction used to key per-client buckets.

Behind a reverse proxy ``request.client.host`` is the proxy's address,
so the client IP is read from proxy headers in priority order:

1. ``CF-Connecting-IP``: set by Cloudflare
2. ``X-Real-IP``: set by nginx-style proxies
3. ``X-Forwarded-For``: leftmost entry
4. ``request.client.host``: direct connections
"""

from __future__ import annotations

from fastapi import Request

_REAL_IP_HEADER_NAMES = (
    "cf-connecting-ip",
    "x-real-ip",
    "x-forwarded-for",
)

_UNKNOWN_CLIENT = "unknown"


def get_real_ip(request: Request) -> str:
    """Best-effort client IP; ``"unknown"`` when nothing is available."""
    for header in _REAL_IP_HEADER_NAMES:
        value = request.headers.get(header)
        if value:
            return value.split(",")[0].strip()

    if request.client:
        return request.client.host

    return _UNKNOWN_CLIENT
