"""Structured log output."""

import json
import logging
import warnings

from smartpack.logging_setup import BookingJsonFormatter, configure_logging


def test_json_formatter_carries_level_logger_and_extra():
    record = logging.LogRecord(
        "smartpack.services.scan_service", logging.WARNING, __file__, 1, "Scan rejected", None, None
    )
    record.asset_code = "A100"

    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        line = BookingJsonFormatter("%(asctime)s %(message)s").format(record)

    payload = json.loads(line)
    assert payload["message"] == "Scan rejected"
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "smartpack.services.scan_service"
    assert payload["asset_code"] == "A100"


def test_configure_logging_replaces_handlers(app):
    logger = configure_logging(app)
    configure_logging(app)
    assert len(logger.handlers) == 1
    assert not isinstance(logger.handlers[0].formatter, BookingJsonFormatter)
