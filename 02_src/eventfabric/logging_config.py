"""Structured logging configuration for the event fabric."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Context keys lifted to the top level of each JSON line for grepping
ROUTING_KEYS = ("bus", "rule", "target", "queue", "event_id", "message_id")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with routing context flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            for key in ROUTING_KEYS:
                if context.get(key) is not None:
                    log_data[key] = context[key]
            rest = {k: v for k, v in context.items() if k not in ROUTING_KEYS}
            if rest:
                log_data["context"] = rest

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def _handlers(log_file: str, console: bool) -> dict:
    handlers = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        },
    }
    if console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }
    return handlers


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console: bool = True,
) -> None:
    """
    Configure JSON logging for the fabric and the API server.

    Args:
        log_level: Root level. Defaults to LOG_LEVEL or INFO.
        log_file: Rotating log file. Defaults to LOG_FILE or 04_logs/app.log.
        console: Also write JSON lines to stdout.
    """
    log_level = (log_level or os.getenv("LOG_LEVEL") or "INFO").upper()
    log_file = log_file or os.getenv("LOG_FILE") or str(DEFAULT_LOG_PATH)
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    handlers = _handlers(log_file, console)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "eventfabric.logging_config.JSONFormatter"},
            },
            "handlers": handlers,
            "root": {"level": log_level, "handlers": list(handlers)},
            "loggers": {
                # statement-level chatter
                "aiosqlite": {"level": "WARNING"},
                "uvicorn.access": {"level": "WARNING"},
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``."""
    return logging.getLogger(name)
