"""Structured JSON logging correlated with the current trace and index.

Each record becomes one orjson-encoded line carrying the trace and span ids
of the request being served, the index it searches, and any ``extra=``
fields. When the logged exception is a query error that knows which node of
the query spec failed, that location is lifted into ``query_path`` so log
queries can group failures by node without parsing messages.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import Any

import orjson

from specquery.errors import SpecQueryError
from specquery.observability.context import get_trace_context


_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}

_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    REDACT_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})
    MAX_MESSAGE_LEN = 2000
    MAX_EXTRA_LEN = 500

    def format(self, record: logging.LogRecord) -> str:
        entry = self._base_entry(record)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
            error = record.exc_info[1]
            if isinstance(error, SpecQueryError) and error.path:
                entry["query_path"] = error.path
        entry.update(self._extra_fields(record))
        return orjson.dumps(entry, default=_to_json).decode("utf-8")

    def _base_entry(self, record: logging.LogRecord) -> dict[str, Any]:
        ctx = get_trace_context()
        message = record.getMessage()
        if len(message) > self.MAX_MESSAGE_LEN:
            message = message[: self.MAX_MESSAGE_LEN] + "..."

        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "trace_id": ctx.get("trace_id", ""),
            "span_id": ctx.get("span_id", ""),
        }
        _, dot, component = record.name.rpartition(".")
        if dot:
            entry["component"] = component
        if ctx.get("index"):
            entry["index"] = ctx["index"]
        return entry

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        extras: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            if key.lower() in self.REDACT_KEYS:
                value = "[REDACTED]"
            elif isinstance(value, str) and len(value) > self.MAX_EXTRA_LEN:
                value = value[: self.MAX_EXTRA_LEN] + "..."
            extras[key] = value
        return extras


def _to_json(value: Any) -> Any:
    """orjson fallback for values it cannot encode natively."""
    if isinstance(value, (set, frozenset)):
        try:
            return sorted(value)
        except TypeError:
            return list(value)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (Path, Exception)):
        return str(value)
    return repr(value)


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
) -> None:
    """Route all logging to stdout through a single handler.

    Args:
        level: Root log level name
        json_output: Use :class:`JsonFormatter`; plain text otherwise
        logger_levels: Per-logger level overrides (logger name -> level name)
    """
    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    for name, name_level in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(getattr(logging, name_level.upper(), logging.INFO))
