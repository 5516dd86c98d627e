"""Logging configuration for the board core, driven by environment variables."""

import os
import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

# Client libraries that log every HTTP request or socket frame at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "websockets", "supabase", "postgrest", "realtime")

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"
JSON_FORMAT = "%(timestamp)s %(levelname)s %(name)s %(correlation_id)s %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Guarantee a correlation_id attribute so both formats can reference it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


class LoggingConfig:
    """Logging settings read from the environment at import time."""

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json").lower()
    LOG_TASK_CONTENT = os.environ.get("LOG_TASK_CONTENT", "true").lower() == "true"
    LOG_MASK_SENSITIVE = os.environ.get("LOG_MASK_SENSITIVE", "true").lower() == "true"
    LOG_SLOW_OPERATION_THRESHOLD_MS = int(os.environ.get("LOG_SLOW_OPERATION_THRESHOLD_MS", "1000"))

    _handler: Optional[logging.Handler] = None

    @classmethod
    def build_formatter(cls, log_format: Optional[str] = None) -> logging.Formatter:
        if (log_format or cls.LOG_FORMAT) == "json":
            return jsonlogger.JsonFormatter(JSON_FORMAT, timestamp=True)
        return logging.Formatter(TEXT_FORMAT)

    @classmethod
    def setup_logging(cls, level: Optional[str] = None, log_format: Optional[str] = None) -> logging.Handler:
        """
        Install one stdout handler on the root logger.

        Calling this again replaces the handler it installed earlier instead
        of stacking a second one; handlers installed by others are left alone.
        """
        root_logger = logging.getLogger()
        log_level = getattr(logging, (level or cls.LOG_LEVEL).upper(), logging.INFO)
        root_logger.setLevel(log_level)

        if cls._handler is not None:
            root_logger.removeHandler(cls._handler)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.addFilter(CorrelationIdFilter())
        handler.setFormatter(cls.build_formatter(log_format))
        root_logger.addHandler(handler)
        cls._handler = handler

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        return handler


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
