"""
Pending booking intent storage.

A PendingBookingIntent is captured when an anonymous visitor picks a slot on
the landing page, and replayed into a real booking once they log in. One
intent is kept per client key (the browser/device identifier the frontend
sends with both requests).

Redis Key Pattern:
    pending_booking:{client_key}   TTL: PENDING_INTENT_TTL_SECONDS
"""

import logging
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from booking.validators.booking_validators import parse_iso_date, parse_time_12h
from shared.config import get_settings
from shared.redis_client import get_redis_client

logger = logging.getLogger(__name__)

INTENT_KEY_PREFIX = "pending_booking"


class PendingBookingIntent(BaseModel):
    """
    Booking request captured before authentication.

    Service and venue are identified by their display names; they are
    resolved to ids at replay time.
    """

    model_config = ConfigDict(populate_by_name=True)

    service: str = Field(min_length=1)
    venue: str = Field(min_length=1, alias="salon")
    date: str
    time: str
    name: str = ""
    phone: str = ""
    is_advance_booking: bool = Field(default=False, alias="isAdvanceBooking")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        parse_iso_date(value)
        return value

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        parse_time_12h(value)
        return value

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at

    def is_expired(self, now: datetime, ttl: timedelta | None = None) -> bool:
        ttl = ttl or timedelta(seconds=get_settings().PENDING_INTENT_TTL_SECONDS)
        return self.age(now) > ttl


def intent_key(client_key: str) -> str:
    return f"{INTENT_KEY_PREFIX}:{client_key}"


def _decode(client_key: str, raw: str | None) -> PendingBookingIntent | None:
    if raw is None:
        return None
    try:
        return PendingBookingIntent.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(
            f"Discarding unreadable pending booking intent: {e}",
            extra={"client_key": client_key},
        )
        return None


async def save_pending_intent(client_key: str, intent: PendingBookingIntent) -> None:
    """Store (or replace) the client's intent with the configured TTL."""
    settings = get_settings()
    client = get_redis_client()
    await client.set(
        intent_key(client_key),
        intent.model_dump_json(),
        ex=settings.PENDING_INTENT_TTL_SECONDS,
    )
    logger.info(
        f"Pending booking intent saved: {intent.service} @ {intent.venue} "
        f"on {intent.date} {intent.time}",
        extra={"client_key": client_key},
    )


async def get_pending_intent(client_key: str) -> PendingBookingIntent | None:
    """Read the client's intent without removing it."""
    raw = await get_redis_client().get(intent_key(client_key))
    return _decode(client_key, raw)


async def remove_pending_intent(client_key: str) -> None:
    await get_redis_client().delete(intent_key(client_key))
    logger.debug("Pending booking intent removed", extra={"client_key": client_key})


async def claim_pending_intent(client_key: str) -> PendingBookingIntent | None:
    """
    Atomically read and remove the client's intent.

    Of two concurrent callers only one receives the intent.
    """
    raw = await get_redis_client().getdel(intent_key(client_key))
    return _decode(client_key, raw)
