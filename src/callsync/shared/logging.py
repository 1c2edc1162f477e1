"""
JSON log lines for the API, the webhook and the push hub.

One object per line on stdout. Call sites attach context through
``extra={...}`` (``call_control_id``, ``user_id``, ``event_type`` ...) and
every such field lands as a top-level key. The correlation id of the current
HTTP request is added automatically.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from callsync.config import get_settings

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_QUIET_LOGGERS = ("httpx", "httpcore", "websockets", "uvicorn.access")


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS:
                continue
            # never let a context field overwrite the envelope
            entry[f"extra_{key}" if key in entry else key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _stdout_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return a module logger writing JSON lines to stdout.

    The level follows ``Settings.log_level``.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_stdout_handler())
        logger.propagate = False
    logger.setLevel(get_settings().log_level)
    return logger


def setup_logging() -> None:
    """Route the root logger (uvicorn, SQLAlchemy, ...) through the JSON formatter."""
    root = logging.getLogger()
    root.handlers = [_stdout_handler()]
    root.setLevel(get_settings().log_level)

    # SQL echo is opt-in through SQLALCHEMY_LOG_LEVEL
    sql_level = os.getenv("SQLALCHEMY_LOG_LEVEL", "").strip().upper() or "WARNING"
    for name in ("sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(name).setLevel(sql_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
