"""Logging handler that reports log records as tripwire events."""

import logging
from typing import Any

from tripwire.client import capture_exception, capture_message
from tripwire.errors import TripwireError

LEVELS = {
    logging.CRITICAL: "fatal",
    logging.ERROR: "error",
    logging.WARNING: "warning",
    logging.INFO: "info",
    logging.DEBUG: "debug",
}

# Records from these loggers are never reported
IGNORED_LOGGER_PREFIX = "tripwire"


def _is_foreign_record(record: logging.LogRecord) -> bool:
    return record.name.split(".")[0] != IGNORED_LOGGER_PREFIX


def _level_for(levelno: int) -> str:
    for threshold in (logging.CRITICAL, logging.ERROR, logging.WARNING, logging.INFO):
        if levelno >= threshold:
            return LEVELS[threshold]
    return "debug"


class EventHandler(logging.Handler):
    """Bridge between the logging module and tripwire events.

    Records carrying ``exc_info`` are reported as exceptions. Other records
    are reported as messages only when ``capture_log_messages`` is true.

    Example:
        logging.getLogger().addHandler(EventHandler(level=logging.ERROR))
    """

    def __init__(self, level: int = logging.ERROR, capture_log_messages: bool = False):
        super().__init__(level=level)
        self.capture_log_messages = capture_log_messages
        # Checked before handle() takes the handler lock, so sender threads never wait on it
        self.addFilter(_is_foreign_record)

    def emit(self, record: logging.LogRecord) -> None:
        options: dict[str, Any] = {
            "event_source": "logger",
            "level": _level_for(record.levelno),
            "extra": {
                "logger_name": record.name,
                "logger_level": record.levelname,
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
            },
        }

        try:
            if record.exc_info and record.exc_info[1] is not None:
                message = record.getMessage()
                if message:
                    options["extra"]["log_message"] = message
                capture_exception(record.exc_info[1], **options)
            elif self.capture_log_messages:
                capture_message(record.getMessage(), **options)
        except (TripwireError, ValueError):
            self.handleError(record)
