# Overview: Application-wide logging configuration (JSON lines by default).

from __future__ import annotations

import logging

from flask import Flask
from pythonjsonlogger import jsonlogger

PACKAGE_LOGGER = "smartpack"


class BookingJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that always carries level and logger name."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def configure_logging(app: Flask) -> logging.Logger:
    """
    Attach one stream handler to the package logger.

    Safe to call for every app instance the tests create: existing handlers
    are replaced, not stacked.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler()
    if app.config.get("LOG_JSON", True):
        handler.setFormatter(BookingJsonFormatter("%(asctime)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = app.testing
    return logger
