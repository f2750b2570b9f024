"""Structured logging configuration for eventtail."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

ROOT_LOGGER = "eventtail"

# Record attributes passed with `extra=` that belong in the "context" object
CONTEXT_FIELDS = ("url", "attempt", "delay_ms", "close_code", "watermark", "new_events")

# Client libraries that log every request or frame at DEBUG/INFO
QUIET_LOGGERS = ("httpx", "httpcore", "websockets")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, timestamped when the record was made."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = {
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if hasattr(record, field)
        }
        if context:
            log_data["context"] = context

        return json.dumps(log_data, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
) -> None:
    """
    Setup structured logging for eventtail.

    Events are written to stdout by the CLI, so log records go to stderr.
    HTTP and WebSocket library loggers stay at WARNING unless the level
    is DEBUG.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   Defaults to LOG_LEVEL env var or WARNING.
        log_file: Optional path to a rotating log file.
                  Defaults to LOG_FILE env var; no file when unset.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "WARNING")

    if log_file is None:
        log_file = os.getenv("LOG_FILE") or None

    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stderr",
        },
    }

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        }

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "eventtail.logging_config.JSONFormatter",
            },
        },
        "handlers": handlers,
        "loggers": {
            name: {"level": "WARNING"}
            for name in QUIET_LOGGERS
            if log_level.upper() != "DEBUG"
        },
        "root": {
            "level": log_level.upper(),
            "handlers": list(handlers),
        },
    }

    logging.config.dictConfig(logging_config)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the eventtail namespace.

    Module names inside the package are used as is. Any other name is
    nested under "eventtail".
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
