"""
Slot Availability Service.

Generates the bookable time slots for one calendar day, one service and one
venue, and marks each slot available or unavailable.

Rules:
- Fixed opening window (OPENING_HOUR..CLOSING_HOUR, last slot inclusive)
  at SLOT_GRANULARITY_MINUTES steps: 9:00 AM ... 6:00 PM by default.
- A slot is unavailable if it starts at or before "now" (no retroactive
  booking), or if its hour:minute equals the start of an active
  (pending/confirmed) appointment for the same service + venue + date.
- Service duration is NOT considered: only exact start times collide.

Usage:
    from booking.services.availability_service import get_slots_for_date

    slots = await get_slots_for_date(service_id, venue_id, date(2025, 3, 14))
    [slot.time for slot in slots if slot.available]
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from booking.errors import StoreError
from booking.validators.booking_validators import parse_time_12h
from database.connection import get_async_session
from database.models import ACTIVE_APPOINTMENT_STATUSES, Appointment
from shared.config import get_settings

logger = logging.getLogger(__name__)


def get_salon_timezone() -> ZoneInfo:
    return ZoneInfo(get_settings().TIMEZONE)


@dataclass(frozen=True)
class TimeSlot:
    """
    A candidate start time on one day.

    Attributes:
        time: Display form, 12-hour clock (e.g. "9:30 AM")
        hour: 24-hour clock hour used for comparisons
        minute: Minute used for comparisons
        available: Whether the slot can be booked
    """

    time: str
    hour: int
    minute: int
    available: bool = True

    def start_on(self, target_date: date, tz: ZoneInfo) -> datetime:
        return datetime.combine(target_date, time(self.hour, self.minute), tzinfo=tz)


def format_time_12h(hour: int, minute: int) -> str:
    """
    Render a 24-hour (hour, minute) pair in 12-hour display form.

    Example:
        >>> format_time_12h(0, 0)
        '12:00 AM'
        >>> format_time_12h(18, 0)
        '6:00 PM'
    """
    period = "PM" if hour >= 12 else "AM"
    hour12 = 12 if hour % 12 == 0 else hour % 12
    return f"{hour12}:{minute:02d} {period}"


def generate_time_slots(
    opening_hour: int | None = None,
    closing_hour: int | None = None,
    granularity_minutes: int | None = None,
) -> list[TimeSlot]:
    """
    Generate the ordered slot grid for a day, all marked available.

    The closing hour is the start of the last slot (18 -> 6:00 PM is the
    final slot).
    """
    settings = get_settings()
    opening_hour = settings.OPENING_HOUR if opening_hour is None else opening_hour
    closing_hour = settings.CLOSING_HOUR if closing_hour is None else closing_hour
    granularity_minutes = granularity_minutes or settings.SLOT_GRANULARITY_MINUTES

    slots: list[TimeSlot] = []
    minutes = opening_hour * 60
    last = closing_hour * 60
    while minutes <= last:
        hour, minute = divmod(minutes, 60)
        slots.append(TimeSlot(time=format_time_12h(hour, minute), hour=hour, minute=minute))
        minutes += granularity_minutes

    return slots


def _booked_minutes(
    booked_start_times: Iterable[datetime], target_date: date, tz: ZoneInfo
) -> set[tuple[int, int]]:
    """Local (hour, minute) of each booked start falling on target_date."""
    booked: set[tuple[int, int]] = set()
    for start in booked_start_times:
        local = start.astimezone(tz) if start.tzinfo else start.replace(tzinfo=tz)
        if local.date() == target_date:
            booked.add((local.hour, local.minute))
    return booked


def compute_slot_availability(
    target_date: date,
    booked_start_times: Iterable[datetime],
    now: datetime,
    tz: ZoneInfo | None = None,
    slots: list[TimeSlot] | None = None,
) -> list[TimeSlot]:
    """
    Mark each slot of target_date available or unavailable.

    Pure function: no I/O, no state. Re-run whenever the selected date or
    the list of existing bookings changes.

    Args:
        target_date: Calendar day in the salon's local timezone
        booked_start_times: Start times of active appointments for the same
            service + venue (other days are ignored)
        now: Current moment (timezone-aware)
        tz: Salon timezone (defaults to the TIMEZONE setting)
        slots: Slot grid to evaluate (defaults to generate_time_slots())

    Returns:
        New list of TimeSlot in chronological order
    """
    tz = tz or get_salon_timezone()
    grid = slots if slots is not None else generate_time_slots()
    booked = _booked_minutes(booked_start_times, target_date, tz)

    result: list[TimeSlot] = []
    for slot in grid:
        in_past = slot.start_on(target_date, tz) <= now
        taken = (slot.hour, slot.minute) in booked
        result.append(
            TimeSlot(time=slot.time, hour=slot.hour, minute=slot.minute, available=not (in_past or taken))
        )
    return result


def is_slot_available(
    target_date: date,
    time_12h: str,
    booked_start_times: Iterable[datetime],
    now: datetime,
    tz: ZoneInfo | None = None,
) -> bool:
    """Availability of a single display-form slot on target_date."""
    tz = tz or get_salon_timezone()
    hour, minute = parse_time_12h(time_12h)
    if datetime.combine(target_date, time(hour, minute), tzinfo=tz) <= now:
        return False
    return (hour, minute) not in _booked_minutes(booked_start_times, target_date, tz)


async def list_booked_start_times(
    service_id: UUID,
    venue_id: UUID,
    target_date: date,
) -> list[datetime]:
    """
    Read start times of active appointments for service + venue on a local day.

    Raises:
        StoreError: If the database read fails
    """
    tz = get_salon_timezone()
    day_start = datetime.combine(target_date, time.min, tzinfo=tz)
    day_end = day_start + timedelta(days=1)

    stmt = (
        select(Appointment.start_time)
        .where(Appointment.service_id == service_id)
        .where(Appointment.venue_id == venue_id)
        .where(Appointment.start_time >= day_start)
        .where(Appointment.start_time < day_end)
        .where(Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))
        .order_by(Appointment.start_time.asc())
    )

    try:
        async with get_async_session() as session:
            result = await session.execute(stmt)
            start_times = list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(
            f"Error fetching existing bookings for {target_date}: {e}",
            exc_info=True,
        )
        raise StoreError(str(e)) from e

    logger.debug(
        f"Found {len(start_times)} active bookings | service={service_id} | "
        f"venue={venue_id} | date={target_date}"
    )
    return start_times


async def get_slots_for_date(
    service_id: UUID,
    venue_id: UUID,
    target_date: date,
    now: datetime | None = None,
) -> list[TimeSlot]:
    """
    Fetch existing bookings and compute the day's slot availability.

    Args:
        service_id: Service being booked
        venue_id: Venue offering the service
        target_date: Local calendar day
        now: Current moment; defaults to the wall clock in the salon timezone

    Returns:
        Ordered list of TimeSlot
    """
    tz = get_salon_timezone()
    now = now or datetime.now(tz)
    booked = await list_booked_start_times(service_id, venue_id, target_date)
    slots = compute_slot_availability(target_date, booked, now, tz=tz)

    logger.info(
        f"Slots computed | date={target_date} | "
        f"available={sum(1 for s in slots if s.available)}/{len(slots)}"
    )
    return slots


class SlotPicker:
    """
    Date and time selection state for one booking screen.

    Holds the availability snapshot taken when a date is selected. Selecting
    a date clears the selected time; selecting an unavailable slot is
    ignored.

    Example:
        >>> picker = SlotPicker(service_id, venue_id)
        >>> await picker.select_date(date(2025, 3, 14))
        >>> picker.select_time("10:00 AM")
        True
        >>> picker.selected_start_time()
        datetime.datetime(2025, 3, 14, 10, 0, tzinfo=zoneinfo.ZoneInfo(key='Asia/Manila'))
    """

    def __init__(self, service_id: UUID, venue_id: UUID) -> None:
        self._service_id = service_id
        self._venue_id = venue_id
        self._tz = get_salon_timezone()
        self.selected_date: date | None = None
        self.selected_time: str | None = None
        self.slots: list[TimeSlot] = []

    async def select_date(self, target_date: date, now: datetime | None = None) -> list[TimeSlot]:
        """Select a day; past days are ignored. Returns the fresh snapshot."""
        now = now or datetime.now(self._tz)
        if target_date < now.astimezone(self._tz).date():
            logger.debug(f"Ignoring past date selection: {target_date}")
            return self.slots

        self.selected_date = target_date
        self.selected_time = None
        self.slots = await get_slots_for_date(self._service_id, self._venue_id, target_date, now=now)
        return self.slots

    def select_time(self, time_12h: str) -> bool:
        """Select a slot from the current snapshot. No-op when unavailable."""
        for slot in self.slots:
            if slot.time == time_12h:
                if slot.available:
                    self.selected_time = time_12h
                    return True
                return False
        return False

    def selected_start_time(self) -> datetime | None:
        if self.selected_date is None or self.selected_time is None:
            return None
        hour, minute = parse_time_12h(self.selected_time)
        return datetime.combine(self.selected_date, time(hour, minute), tzinfo=self._tz)
