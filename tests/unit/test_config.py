"""
Unit tests for config.py - Settings loaded from the environment.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from shared.config import Settings, get_settings


class TestSettings:
    def test_booking_window_defaults(self, monkeypatch):
        for key in ("OPENING_HOUR", "CLOSING_HOUR", "SLOT_GRANULARITY_MINUTES", "PENDING_INTENT_TTL_SECONDS"):
            monkeypatch.delenv(key, raising=False)

        settings = Settings(_env_file=None)

        assert settings.OPENING_HOUR == 9
        assert settings.CLOSING_HOUR == 18
        assert settings.SLOT_GRANULARITY_MINUTES == 30
        assert settings.PENDING_INTENT_TTL_SECONDS == 3600
        assert settings.TRIAL_PERIOD_DAYS == 14
        assert settings.PRO_MONTHLY_PRICE == Decimal("1499.00")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CLOSING_HOUR", "20")
        monkeypatch.setenv("TIMEZONE", "Asia/Singapore")

        settings = Settings(_env_file=None)

        assert settings.CLOSING_HOUR == 20
        assert settings.TIMEZONE == "Asia/Singapore"

    def test_invalid_hour_is_rejected(self, monkeypatch):
        monkeypatch.setenv("OPENING_HOUR", "25")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_test_environment_is_loaded(self):
        assert get_settings().JWT_SECRET
        assert "localhost" in get_settings().DATABASE_URL
