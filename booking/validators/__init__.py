"""
Booking validators.

Validators for rules checked before a booking write:
- validate_identifier: Service / venue ids must be well-formed UUIDs
- validate_future_start: No retroactive booking
- validate_slot_on_grid: Start must be one of the day's bookable slots
- find_active_appointment_at: Exact start-time collision pre-check
- parse_time_12h / parse_iso_date: Parsing of display-form date and time
"""

from booking.validators.booking_validators import (
    find_active_appointment_at,
    parse_iso_date,
    parse_time_12h,
    validate_future_start,
    validate_identifier,
    validate_slot_on_grid,
)

__all__ = [
    "find_active_appointment_at",
    "parse_iso_date",
    "parse_time_12h",
    "validate_future_start",
    "validate_identifier",
    "validate_slot_on_grid",
]
