"""
Logging configuration for the hotel backend.

Console output only; the formatter is plain text in development and JSON
(python-json-logger) when ``LOG_FORMAT=json``.
"""
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from settings import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with timestamp, level and request context fields"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["environment"] = settings.ENVIRONMENT
        if hasattr(record, "request_id"):
            log_record["request_id"] = record.request_id


def get_logging_config(level: str = None, fmt: str = None) -> Dict[str, Any]:
    level = (level or settings.LOG_LEVEL).upper()
    fmt = fmt or settings.LOG_FORMAT
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            },
            "json": {
                "()": CustomJsonFormatter,
                "format": "%(timestamp)s %(level)s %(logger)s %(message)s",
            },
        },
        "handlers": {
            "console": {
                "level": level,
                "class": "logging.StreamHandler",
                "formatter": "json" if fmt == "json" else "standard",
            },
        },
        "loggers": {
            "": {"handlers": ["console"], "level": level},
            "uvicorn.access": {"level": "WARNING"},
            "pymongo": {"level": "WARNING"},
        },
    }


def setup_logging(level: str = None, fmt: str = None) -> None:
    """Apply the logging configuration; safe to call more than once."""
    logging.config.dictConfig(get_logging_config(level, fmt))
