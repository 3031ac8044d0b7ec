"""Structured logging for the cache, pattern engine and servers."""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone

from sahhageo.services.call_context import get_call_id

# LogRecord attributes that are never treated as structured extras.
_RESERVED_ATTRS: frozenset[str] = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

# Chatty third-party loggers capped at WARNING.
_QUIET_LOGGERS = ("httpx", "httpcore", "mcp.server.lowlevel.server")


def _extras(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


def _format_exception(record: logging.LogRecord) -> str | None:
    if record.exc_info and record.exc_info[0] is not None:
        return "".join(traceback.format_exception(*record.exc_info))
    return None


class JSONFormatter(logging.Formatter):
    """One JSON object per line, extras merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        entry: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        call_id = get_call_id()
        if call_id:
            entry["call_id"] = call_id

        entry.update(_extras(record))

        exc = _format_exception(record)
        if exc:
            entry["exception"] = exc

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable line: time, level, [call id], logger, message, key=value extras."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        ts = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).strftime("%Y-%m-%d %H:%M:%S")

        call_id = get_call_id()
        cid_prefix = f"[{call_id[:12]}] " if call_id else ""

        line = f"{ts} {record.levelname:<8} {cid_prefix}{record.name} - {record.message}"

        extras = _extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in sorted(extras.items()))

        exc = _format_exception(record)
        if exc:
            line += "\n" + exc

        return line


def setup_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """Configure the root logger on stderr. Call once per process."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # stdout belongs to the MCP stdio transport
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
