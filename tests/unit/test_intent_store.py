"""
Unit tests for intent_store.py - Pending booking intents in Redis.

Tests coverage:
- PendingBookingIntent validation (date / 12-hour time) and aliases
- Expiry (older than one hour)
- save / get / remove / claim against a mocked Redis client
- Unreadable payloads are discarded
"""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from booking.storage.intent_store import (
    PendingBookingIntent,
    claim_pending_intent,
    get_pending_intent,
    intent_key,
    remove_pending_intent,
    save_pending_intent,
)

MODULE = "booking.storage.intent_store"
CREATED = datetime(2025, 3, 13, 2, 0, tzinfo=UTC)


@pytest.fixture
def intent():
    return PendingBookingIntent(
        service="Haircut",
        venue="Glam Studio",
        date="2025-03-14",
        time="2:00 PM",
        name="Maria Santos",
        phone="+63 917 555 0101",
        created_at=CREATED,
    )


@pytest.fixture
def mock_redis():
    client = AsyncMock()
    with patch(f"{MODULE}.get_redis_client", return_value=client):
        yield client


class TestPendingBookingIntent:
    def test_accepts_landing_page_aliases(self):
        intent = PendingBookingIntent.model_validate(
            {
                "service": "Haircut",
                "salon": "Glam Studio",
                "date": "2025-03-14",
                "time": "2:00 PM",
                "name": "Maria",
                "phone": "0917",
                "isAdvanceBooking": True,
            }
        )

        assert intent.venue == "Glam Studio"
        assert intent.is_advance_booking is True

    @pytest.mark.parametrize("bad_date", ["14/03/2025", "2025-02-30", ""])
    def test_rejects_malformed_date(self, bad_date):
        with pytest.raises(ValidationError):
            PendingBookingIntent(service="Haircut", venue="Glam Studio", date=bad_date, time="2:00 PM")

    @pytest.mark.parametrize("bad_time", ["14:00", "2 PM", "25:00 PM"])
    def test_rejects_malformed_time(self, bad_time):
        with pytest.raises(ValidationError):
            PendingBookingIntent(service="Haircut", venue="Glam Studio", date="2025-03-14", time=bad_time)

    def test_not_expired_after_59_minutes(self, intent):
        assert intent.is_expired(CREATED + timedelta(minutes=59)) is False

    def test_expired_after_61_minutes(self, intent):
        assert intent.is_expired(CREATED + timedelta(minutes=61)) is True

    def test_exactly_one_hour_is_not_expired(self, intent):
        assert intent.is_expired(CREATED + timedelta(hours=1)) is False

    def test_custom_ttl(self, intent):
        assert intent.is_expired(CREATED + timedelta(minutes=11), ttl=timedelta(minutes=10)) is True


class TestIntentStore:
    def test_key_pattern(self):
        assert intent_key("device-123") == "pending_booking:device-123"

    @pytest.mark.asyncio
    async def test_save_sets_value_with_ttl(self, intent, mock_redis):
        await save_pending_intent("device-123", intent)

        mock_redis.set.assert_awaited_once()
        args, kwargs = mock_redis.set.call_args
        assert args[0] == "pending_booking:device-123"
        assert json.loads(args[1])["service"] == "Haircut"
        assert kwargs["ex"] == 3600

    @pytest.mark.asyncio
    async def test_get_round_trips_stored_payload(self, intent, mock_redis):
        mock_redis.get.return_value = intent.model_dump_json()

        loaded = await get_pending_intent("device-123")

        assert loaded == intent
        mock_redis.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, mock_redis):
        mock_redis.get.return_value = None
        assert await get_pending_intent("device-123") is None

    @pytest.mark.asyncio
    async def test_unreadable_payload_is_discarded(self, mock_redis):
        mock_redis.get.return_value = "{not json"
        assert await get_pending_intent("device-123") is None

    @pytest.mark.asyncio
    async def test_claim_reads_and_deletes_atomically(self, intent, mock_redis):
        mock_redis.getdel.return_value = intent.model_dump_json()

        claimed = await claim_pending_intent("device-123")

        assert claimed == intent
        mock_redis.getdel.assert_awaited_once_with("pending_booking:device-123")

    @pytest.mark.asyncio
    async def test_second_claim_gets_nothing(self, intent, mock_redis):
        mock_redis.getdel.side_effect = [intent.model_dump_json(), None]

        first = await claim_pending_intent("device-123")
        second = await claim_pending_intent("device-123")

        assert first is not None
        assert second is None

    @pytest.mark.asyncio
    async def test_remove(self, mock_redis):
        await remove_pending_intent("device-123")
        mock_redis.delete.assert_awaited_once_with("pending_booking:device-123")
