"""Structured logging for the bus harness.

Records are written as one JSON object per line. ``topic`` and
``correlation_id`` are promoted to top-level fields so a run's log can be
filtered per subscription or per session; any other context stays nested
under ``context``.
"""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import resolve_log_path

CONTEXT_FIELDS = ("topic", "correlation_id")


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }

        context = dict(getattr(record, "context", None) or {})
        for name in CONTEXT_FIELDS:
            if name in context:
                log_data[name] = context.pop(name)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """Logger carrying fixed context; per-call ``extra["context"]`` is merged in."""

    def process(self, msg: Any, kwargs: dict) -> tuple[Any, dict]:
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = {**self.extra, **extra.get("context", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
) -> None:
    """
    Route harness logs to a rotating JSON file and the console.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
                   Defaults to LOG_LEVEL env var or INFO.
        log_file: Defaults to HARNESS_LOG_FILE env var or 04_logs/harness.log.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = str(resolve_log_path(os.getenv("HARNESS_LOG_FILE")))

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "harness.logging_config.JSONFormatter"},
            "console": {"format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s"},
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": log_file,
                "maxBytes": 5 * 1024 * 1024,
                "backupCount": 3,
                "formatter": "json",
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            # aiokafka logs every rebalance and fetch at INFO
            "aiokafka": {"level": "WARNING"},
        },
        "root": {
            "level": log_level.upper(),
            "handlers": ["file", "console"],
        },
    })


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def bind_logger(name: str, **context: Any) -> ContextAdapter:
    """Logger that stamps every record with the given context fields."""
    return ContextAdapter(logging.getLogger(name), context)
