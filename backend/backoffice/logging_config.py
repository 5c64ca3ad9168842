# Overview: Channel log sinks (daily, auth, api, database, security, financial).

"""
Structured channel logging.

Every channel is a standard library logger named ``backoffice.<channel>``.
Structured key/value context travels on the record as ``record.context``
(pass ``extra={"context": {...}}`` or use ``emit``).

When LOG_DIR is configured each channel also writes JSON lines to its own
file, rotated at midnight and kept for the channel's retention period.
Without LOG_DIR, records only propagate to the root logger.
"""

from __future__ import annotations

import json
import logging
import os
from logging.handlers import TimedRotatingFileHandler
from typing import Any

LOGGER_PREFIX = "backoffice"

# channel -> (file name, retention days, minimum level written to file)
CHANNELS: dict[str, tuple[str, int, int]] = {
    "daily": ("backoffice.log", 14, logging.DEBUG),
    "auth": ("auth.log", 30, logging.INFO),
    "api": ("api.log", 14, logging.INFO),
    "database": ("database.log", 7, logging.WARNING),
    "security": ("security.log", 90, logging.INFO),
    "financial": ("financial.log", 90, logging.INFO),
}

_HANDLER_MARKER = "_backoffice_channel_handler"


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, channel, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "channel": record.name.rsplit(".", 1)[-1],
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)


def channel(name: str) -> logging.Logger:
    """Return the logger for a channel. Unknown names fall back to 'daily'."""
    if name not in CHANNELS:
        name = "daily"
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def emit(channel_name: str, level: int, message: str, context: dict | None = None) -> None:
    channel(channel_name).log(level, message, extra={"context": dict(context or {})})


def configure_logging(app) -> None:
    """
    Attach rotating file handlers for every channel.

    Idempotent: handlers installed by a previous call are replaced, so
    repeated create_app() calls (tests, reloader) do not duplicate output.
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    log_dir = app.config.get("LOG_DIR")

    for name, (filename, retention_days, min_level) in CHANNELS.items():
        logger = channel(name)
        logger.setLevel(level)

        for handler in list(logger.handlers):
            if getattr(handler, _HANDLER_MARKER, False):
                logger.removeHandler(handler)
                handler.close()

        if not log_dir:
            continue

        os.makedirs(log_dir, exist_ok=True)
        handler = TimedRotatingFileHandler(
            os.path.join(log_dir, filename),
            when="midnight",
            backupCount=retention_days,
            encoding="utf-8",
            delay=True,
        )
        handler.setLevel(max(min_level, level))
        handler.setFormatter(JsonFormatter())
        setattr(handler, _HANDLER_MARKER, True)
        logger.addHandler(handler)
