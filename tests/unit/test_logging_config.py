"""
Unit tests for logging_config.py - JSON log formatting.
"""

import json
import logging

from shared.logging_config import JSONFormatter


def _record(message, **extra):
    record = logging.LogRecord(
        name="booking.services.lifecycle_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_base_fields(self):
        payload = json.loads(JSONFormatter().format(_record("Appointment cancelled by client")))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "booking.services.lifecycle_service"
        assert payload["message"] == "Appointment cancelled by client"
        assert "timestamp" in payload

    def test_extra_fields_are_included(self):
        payload = json.loads(
            JSONFormatter().format(
                _record("Pending booking created", appointment_id="abc", client_key="device-123")
            )
        )

        assert payload["appointment_id"] == "abc"
        assert payload["client_key"] == "device-123"
        assert "user_id" not in payload

    def test_exception_is_rendered(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys

            record = _record("failed")
            record.exc_info = sys.exc_info()

        payload = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in payload["exception"]
