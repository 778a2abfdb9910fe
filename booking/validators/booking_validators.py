"""
Booking validation functions for business rules enforcement.

This module implements validation logic run before any booking write:
- Opaque identifier format (service / venue ids must be UUIDs)
- No retroactive booking (start time must be in the future)
- Start times on the daily slot grid (whole minutes, salon-local window)
- Exact start-time collision pre-check against active appointments

Validators return a result dict instead of raising so callers can log the
failure context before converting it into a BookingError.
"""

import logging
import re
from collections.abc import Iterable
from datetime import date, datetime, tzinfo
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import ACTIVE_APPOINTMENT_STATUSES, Appointment

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

TIME_12H_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")


def validate_identifier(value: UUID | str | None, field_name: str) -> dict[str, Any]:
    """
    Validate that an identifier is a well-formed UUID.

    Args:
        value: UUID instance or its canonical string form
        field_name: Name used in the error message (e.g. "service_id")

    Returns:
        {"valid": bool, "value": UUID | None, "error_code": str | None, "error_message": str | None}

    Example:
        >>> validate_identifier("Haircut", "service_id")["error_code"]
        'INVALID_SERVICE_ID'
    """
    if isinstance(value, UUID):
        return {"valid": True, "value": value, "error_code": None, "error_message": None}

    if isinstance(value, str) and UUID_PATTERN.match(value.strip()):
        return {"valid": True, "value": UUID(value.strip()), "error_code": None, "error_message": None}

    return {
        "valid": False,
        "value": None,
        "error_code": f"INVALID_{field_name.upper()}",
        "error_message": f'Invalid {field_name} format: "{value}". Expected a valid UUID.',
    }


def validate_future_start(start_time: datetime, now: datetime) -> dict[str, Any]:
    """
    Validate that a slot starts strictly after now.

    Args:
        start_time: Proposed start (timezone-aware)
        now: Current moment (timezone-aware)

    Returns:
        {"valid": bool, "error_code": str | None, "error_message": str | None}
    """
    if start_time.tzinfo is None:
        return {
            "valid": False,
            "error_code": "NAIVE_START_TIME",
            "error_message": "Start time must include a timezone.",
        }

    if start_time <= now:
        return {
            "valid": False,
            "error_code": "PAST_SLOT",
            "error_message": "Cannot book appointments in the past. Please select a future time.",
        }

    return {"valid": True, "error_code": None, "error_message": None}


def validate_slot_on_grid(
    start_time: datetime, tz: tzinfo, grid: Iterable[tuple[int, int]]
) -> dict[str, Any]:
    """
    Validate that a start time is one of the bookable slots of its day.

    The start is read in the salon timezone and must land exactly on a grid
    (hour, minute) with zero seconds, otherwise it could sit beside a booked
    slot without colliding with it.

    Args:
        start_time: Proposed start (timezone-aware)
        tz: Salon timezone
        grid: Bookable (hour, minute) pairs in salon-local time

    Returns:
        {"valid": bool, "error_code": str | None, "error_message": str | None}

    Example:
        >>> validate_slot_on_grid(datetime(2025, 3, 14, 2, 15, tzinfo=tz), tz, [(9, 0)])["error_code"]
        'INVALID_SLOT'
    """
    local = start_time.astimezone(tz)
    on_grid = (
        local.second == 0
        and local.microsecond == 0
        and (local.hour, local.minute) in set(grid)
    )

    if not on_grid:
        return {
            "valid": False,
            "error_code": "INVALID_SLOT",
            "error_message": f"{local.strftime('%H:%M:%S')} is not a bookable time slot.",
        }

    return {"valid": True, "error_code": None, "error_message": None}


def parse_time_12h(value: str) -> tuple[int, int]:
    """
    Parse a 12-hour clock string into a 24-hour (hour, minute) pair.

    Example:
        >>> parse_time_12h("2:00 PM")
        (14, 0)
        >>> parse_time_12h("12:30 AM")
        (0, 30)

    Raises:
        ValueError: If the string is not in "H:MM AM|PM" form
    """
    match = TIME_12H_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid 12-hour time: {value!r}")

    hour = int(match.group(1))
    minute = int(match.group(2))
    period = match.group(3).upper()

    if not 1 <= hour <= 12 or not 0 <= minute <= 59:
        raise ValueError(f"Invalid 12-hour time: {value!r}")

    if period == "PM" and hour != 12:
        hour += 12
    elif period == "AM" and hour == 12:
        hour = 0

    return hour, minute


def parse_iso_date(value: str) -> date:
    """Parse a YYYY-MM-DD date string."""
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid date: {value!r}") from e


async def find_active_appointment_at(
    session: AsyncSession,
    service_id: UUID,
    venue_id: UUID,
    start_time: datetime,
) -> Appointment | None:
    """
    Best-effort pre-check for an active appointment at the exact same slot.

    Only pending/confirmed appointments with identical service, venue and
    start timestamp count. The partial unique index on bookings catches the
    race this read cannot.
    """
    stmt = (
        select(Appointment)
        .where(Appointment.service_id == service_id)
        .where(Appointment.venue_id == venue_id)
        .where(Appointment.start_time == start_time)
        .where(Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))
        .limit(1)
    )
    result = await session.execute(stmt)
    conflict = result.scalars().first()

    if conflict is not None:
        logger.warning(
            f"Slot already booked: service={service_id} venue={venue_id} start={start_time.isoformat()}",
            extra={"appointment_id": str(conflict.id)},
        )

    return conflict
