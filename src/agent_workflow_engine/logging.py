"""Structured logging configuration.

Uses standard library logging with a JSON formatter. Records emitted inside
`run_context(run_id)` carry the run id even when the caller did not pass it,
so interleaved output from concurrent server runs stays attributable.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, TextIO

_RESERVED_LOG_RECORD_ATTRS: set[str] = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
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

# Each thread starts with an empty context, so a server run thread only sees its own id.
_current_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "workflow_run_id", default=None
)


@contextmanager
def run_context(run_id: str) -> Iterator[None]:
    """Tag every record logged in this block with `run_id`."""

    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


class RunContextFilter(logging.Filter):
    """Adds the active run id to records that do not name one."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        run_id = _current_run_id.get()
        if run_id is not None and not hasattr(record, "run_id"):
            record.run_id = run_id
        return True


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str, *, stream: TextIO | None = None) -> None:
    """Send JSON lines to `stream` (stderr by default), replacing existing root handlers."""

    root = logging.getLogger()

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RunContextFilter())

    root.addHandler(handler)
    root.setLevel(level.upper())

    # HTTP client chatter is only interesting when debugging the backend.
    quiet = {"urllib3": logging.INFO, "openai": logging.INFO, "httpx": logging.WARNING}
    for name, floor in quiet.items():
        logging.getLogger(name).setLevel(max(root.level, floor))
