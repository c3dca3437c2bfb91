"""Centralized logging configuration.

Text logs for local runs, structured JSON logs for hosted runs. Export jobs
attach ``job_id`` / ``org_name`` to the log context so every line emitted while
a job runs (request thread or deferred projection thread) can be correlated.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from infra.config import get_settings

# Context that follows a request or job through the system.
log_ctx: ContextVar[dict[str, Any] | None] = ContextVar("log_ctx", default=None)

_STANDARD_RECORD_ATTRS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
        "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
        "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
    }
)


def set_log_context(**kwargs: Any) -> None:
    """Merge values into the context included in subsequent JSON log entries."""
    current = dict(log_ctx.get() or {})
    current.update(kwargs)
    log_ctx.set(current)


def clear_log_context() -> None:
    log_ctx.set({})


def get_log_context() -> dict[str, Any]:
    ctx = log_ctx.get()
    return dict(ctx) if ctx else {}


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Scope extra context to a block; the previous context is restored on exit."""
    token = log_ctx.set({**get_log_context(), **kwargs})
    try:
        yield
    finally:
        log_ctx.reset(token)


def _utc_iso8601() -> str:
    # Example: 2026-01-24T18:03:12.123Z
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; extras and log context are merged in."""

    def __init__(self, *, extra_fields: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._extra_fields = dict(extra_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": _utc_iso8601(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        for k, v in record.__dict__.items():
            if k not in _STANDARD_RECORD_ATTRS and k not in base:
                base[k] = v

        for k, v in self._extra_fields.items():
            base.setdefault(k, v)

        for k, v in get_log_context().items():
            base.setdefault(k, v)

        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-friendly logs with UTC timestamps."""

    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__("%(asctime)sZ | %(levelname)s | %(name)s | %(message)s")


class StructuredLogger:
    """Event-style logger: ``logger.info("job_scheduled", job_id=...)``.

    Keyword fields travel as ``extra=`` so :class:`JsonFormatter` emits them as
    top-level keys; the text formatter appends them as ``key=value`` pairs.
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event: str, exc_info: bool = False, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        suffix = " ".join(f"{k}={v}" for k, v in kwargs.items())
        message = f"{event} {suffix}" if suffix else event
        self._logger.log(level, message, extra={"event": event, **kwargs}, exc_info=exc_info)

    def debug(self, event: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._log(logging.INFO, event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, event, **kwargs)

    def exception(self, event: str, **kwargs: Any) -> None:
        """Log at ERROR with the active exception attached."""
        self._log(logging.ERROR, event, exc_info=True, **kwargs)


def setup_logging(
    *,
    level: str | None = None,
    json_logs: bool | None = None,
    override_root_handlers: bool | None = None,
    extra_fields: Mapping[str, Any] | None = None,
) -> None:
    """
    Configure the root logger once per process.

    Env vars:
      - FLOWREPORT_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default INFO)
      - FLOWREPORT_LOG_JSON: 1/0 (default 0)
      - FLOWREPORT_LOG_OVERRIDE: 1/0 (default 0). If 0, only configures
        logging when the root logger has no handlers yet.
    """
    config = get_settings(reload=True).logging

    resolved_level = (level or config.level).upper()
    use_json = config.json_logs if json_logs is None else json_logs
    override = config.override_root_handlers if override_root_handlers is None else override_root_handlers

    root = logging.getLogger()
    root.setLevel(getattr(logging, resolved_level, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JsonFormatter(extra_fields=extra_fields))
    else:
        handler.setFormatter(TextFormatter())

    if override:
        for h in list(root.handlers):
            root.removeHandler(h)
        root.addHandler(handler)
    elif not root.handlers:
        root.addHandler(handler)

    for noisy in ("boto3", "botocore", "urllib3", "s3transfer", "werkzeug"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


__all__ = [
    "JsonFormatter",
    "StructuredLogger",
    "TextFormatter",
    "clear_log_context",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
]
