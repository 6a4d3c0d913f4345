"""Structured logging bootstrap.

Configures the root logger so every ``logging.getLogger(__name__)`` call
across rdbkit (and the host application) emits either:

* **JSON lines** (``json_output=True``, default): machine-parseable by
  Loki / Promtail with ``| json`` in LogQL queries.
* **Plain text** (``json_output=False``): timestamp-prefixed lines for
  local development.

When OpenTelemetry tracing is active the current ``trace_id`` and
``span_id`` are injected into every log record.
"""

from __future__ import annotations

import logging
import sys

from opentelemetry import trace
from pythonjsonlogger.json import JsonFormatter

from rdbkit.configs.system import LoggingConfig


class _TraceContextFilter(logging.Filter):
    """Injects OTEL trace/span IDs into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        span = trace.get_current_span()
        ctx = span.get_span_context()
        if ctx and ctx.is_valid:
            record.trace_id = format(ctx.trace_id, "032x")  # type: ignore[attr-defined]
            record.span_id = format(ctx.span_id, "016x")  # type: ignore[attr-defined]
        else:
            record.trace_id = ""  # type: ignore[attr-defined]
            record.span_id = ""  # type: ignore[attr-defined]
        return True


_DEV_FORMAT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
_DEV_DATEFMT = "%H:%M:%S"


def build_formatter(config: LoggingConfig) -> logging.Formatter:
    """Return the JSON or plain formatter selected by ``config``."""
    if config.json_output:
        return JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s "
            "%(trace_id)s %(span_id)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger",
            },
            defaults={"trace_id": "", "span_id": ""},
        )
    return logging.Formatter(fmt=_DEV_FORMAT, datefmt=_DEV_DATEFMT)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the root logger (call once at startup)."""
    if config is None:
        config = LoggingConfig()

    root = logging.getLogger()
    root.setLevel(config.level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_TraceContextFilter())
    handler.setFormatter(build_formatter(config))

    root.handlers = [handler]

    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)
