"""
Logging utilities for the print spooler.

Log lines come from two places: Flask request handlers and the background
spooler worker. Records are tagged so either can be followed:

- SpoolerContextFilter adds request_id/path inside a Flask request, the job id
  the current thread is working on (see job_log_context), and the thread name
- JsonFormatter emits one JSON object per line when PRINTSPOOLER_JSON_LOGS=true
- configure_logging() installs a single journald or console handler on the root
  logger and routes the app and werkzeug loggers through it
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
import threading
from collections.abc import Iterator
from typing import Optional

PLAIN_FORMAT = "[%(asctime)s] %(levelname)s [%(thread_name)s] req=%(request_id)s job=%(job_id)s %(name)s: %(message)s"

_CURRENT_JOB: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("print_spooler_job", default=None)


@contextlib.contextmanager
def job_log_context(job_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with job_id."""
    token = _CURRENT_JOB.set(job_id)
    try:
        yield
    finally:
        _CURRENT_JOB.reset(token)


def _request_fields() -> tuple[str, str]:
    try:
        from flask import g, has_request_context, request
    except ImportError:
        return "-", "-"
    if not has_request_context():
        return "-", "-"
    return getattr(g, "request_id", "-"), request.path


class SpoolerContextFilter(logging.Filter):
    """
    Never drops a record; only decorates it.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.request_id, record.path = _request_fields()
        record.job_id = _CURRENT_JOB.get() or "-"
        record.thread_name = threading.current_thread().name
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "thread": getattr(record, "thread_name", record.threadName),
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "job_id": getattr(record, "job_id", "-"),
        }
        path = getattr(record, "path", "-")
        if path != "-":
            payload["path"] = path
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _resolve_level() -> int:
    name = os.environ.get("PRINTSPOOLER_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _build_handler(formatter: logging.Formatter) -> logging.Handler:
    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler(SYSLOG_IDENTIFIER="print-spooler")
    except ImportError:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(SpoolerContextFilter())
    return handler


def configure_logging() -> logging.Logger:
    """
    Configure root logging for the application. Safe to call more than once.

    - Level from PRINTSPOOLER_LOG_LEVEL (default INFO)
    - JSON lines when PRINTSPOOLER_JSON_LOGS is 1/true/yes, plain text otherwise
    - systemd's JournalHandler when python-systemd is installed, else stderr
    - The Flask app logger ("print_spooler") and werkzeug propagate to root
      instead of keeping handlers of their own

    Returns the configured root logger.
    """
    root = logging.getLogger()
    root.setLevel(_resolve_level())

    json_logs = os.environ.get("PRINTSPOOLER_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter = JsonFormatter() if json_logs else logging.Formatter(PLAIN_FORMAT)
    root.handlers = [_build_handler(formatter)]

    for name in ("print_spooler", "werkzeug"):
        child = logging.getLogger(name)
        child.handlers = []
        child.propagate = True

    return root


__all__ = ["JsonFormatter", "SpoolerContextFilter", "configure_logging", "job_log_context"]
