import logging
from logging.config import dictConfig
from typing import Literal

from pythonjsonlogger.json import JsonFormatter

from .request_context import RequestIdFilter

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


def configure_logging(level: LogLevel = "INFO", json_output: bool = False) -> None:
    """Configure structured logging across the app."""
    formatters = {
        "default": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s",
        },
        "json": {
            "()": JsonFormatter,
            "fmt": "%(asctime)s %(levelname)s %(name)s %(request_id)s %(message)s",
        },
    }

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": RequestIdFilter}},
            "formatters": formatters,
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_output else "default",
                    "filters": ["request_id"],
                }
            },
            "root": {"handlers": ["console"], "level": level.upper()},
        }
    )

    logging.getLogger("uvicorn").handlers = []
    logging.getLogger("uvicorn.error").handlers = []
    logging.getLogger("uvicorn.access").handlers = []
