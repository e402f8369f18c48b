"""Logging configuration utilities for the web server."""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from webserver.domain.connection_context import (
    NO_CONNECTION,
    ConnectionLoggerAdapter,
    component_for,
    current_connection_id,
)

LOGGER_NAME = "webserver"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(connection_id)s] %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

CONNECTION_KEYS = ("client", "previous_state", "state", "drained_bytes")
REQUEST_KEYS = ("verb", "path", "status", "location", "content_length", "bytes_out")
FILE_KEYS = ("append", "file_created", "lines_written")
ERROR_KEYS = ("error_type", "error")
STARTUP_KEYS = (
    "host",
    "port",
    "directory",
    "working_directory",
    "read_timeout",
    "welcome_path",
    "log_destination",
    "log_level",
    "log_format",
    "signal",
)
EXTRA_KEYS = CONNECTION_KEYS + REQUEST_KEYS + FILE_KEYS + ERROR_KEYS + STARTUP_KEYS


class ConnectionIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Stamp records from plain loggers with the connection being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "connection_id"):
            record.connection_id = current_connection_id()
        if not hasattr(record, "component"):
            record.component = component_for(record.name)
        return True


class JsonFormatter(logging.Formatter):
    """One sorted JSON object per record.

    Only the whitelisted extras are emitted so arbitrary record attributes
    never end up in the log stream.
    """

    def format(self, record: logging.LogRecord) -> str:
        fields = {
            key: getattr(record, key) for key in EXTRA_KEYS if hasattr(record, key)
        }
        fields.update(
            timestamp=self.formatTime(record, self.datefmt),
            level=record.levelname,
            connection_id=getattr(record, "connection_id", NO_CONNECTION),
            component=getattr(record, "component", component_for(record.name)),
            message=record.getMessage(),
        )
        event = getattr(record, "event", None)
        if event is not None:
            fields["event"] = event
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)
        return json.dumps(fields, sort_keys=True, default=str)


def _resolve_level(level_name: str) -> int:
    """Translate text level names into logging module numeric levels."""
    level = getattr(logging, level_name.upper(), None)
    if isinstance(level, int):
        return level
    return logging.INFO


def _build_handler(
    destination: Optional[str], level: int, use_json: bool = True
) -> logging.Handler:
    """Create a stdout or rotating file handler for the configured logger."""
    if destination and destination.lower() != "stdout":
        target_path = Path(destination)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            target_path,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
            errors="backslashreplace",
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if use_json:
        handler.setFormatter(JsonFormatter(datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    handler.addFilter(ConnectionIdFilter())
    return handler


def configure_logging(
    level: str = "INFO", destination: Optional[str] = None, use_json: bool = True
) -> ConnectionLoggerAdapter:
    """Configure and return the project logger with the requested handler."""
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = _build_handler(destination, numeric_level, use_json)
    logger.addHandler(handler)

    adapter = ConnectionLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "log_destination": destination or "stdout",
            "log_level": logging.getLevelName(numeric_level),
            "log_format": "json" if use_json else "text",
        },
    )
    return adapter
