"""
Error taxonomy for the scheduling core.

Every failure a caller can observe is a BookingError subclass carrying a
stable error_code. to_dict() renders the same failure shape used by the
API layer:

    {
        "success": False,
        "error_code": "SLOT_TAKEN",
        "error_message": "This time slot is no longer available...",
        "details": {...}
    }
"""

from typing import Any


class BookingError(Exception):
    """Base class for scheduling core failures."""

    error_code: str = "BOOKING_ERROR"
    default_message: str = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error_code": self.error_code,
            "error_message": self.message,
            "details": self.details,
        }


class BookingValidationError(BookingError):
    """Malformed identifiers, past-time slots, missing fields."""

    error_code = "VALIDATION_ERROR"
    default_message = "The booking request is invalid."


class NotPermittedError(BookingError):
    """Actor lacks the role (or ownership) required for the operation."""

    error_code = "NOT_PERMITTED"
    default_message = "You are not permitted to perform this action."


class AppointmentNotFoundError(BookingError):
    """Target appointment no longer exists."""

    error_code = "APPOINTMENT_NOT_FOUND"
    default_message = "This appointment no longer exists."


class InvalidTransitionError(BookingError):
    """Requested status change is not in the lifecycle table."""

    error_code = "INVALID_TRANSITION"
    default_message = "This appointment can no longer be changed to that status."


class SlotConflictError(BookingError):
    """Slot was taken between availability read and booking write."""

    error_code = "SLOT_TAKEN"
    default_message = "This time slot is no longer available. Please select another time."


class StoreError(BookingError):
    """Backing store or network failure. The store message is kept verbatim."""

    error_code = "STORE_ERROR"
    default_message = "The booking service is temporarily unavailable."
