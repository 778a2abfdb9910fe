"""
Deferred booking reconciliation - Replays a landing-page booking after login.

Flow (runs once per authentication event):
1. Claim the stored intent for the client key (atomic read + delete)
2. No intent -> nothing to do; older than the TTL -> discarded
3. Resolve service / venue names to ids; unknown or ambiguous -> discarded
4. Build the absolute start time from the intent's date and 12-hour time
5. Create the appointment through BookingTransaction with a landing-page
   note carrying the visitor's name and phone
6. Report CREATED so the caller can show the booking confirmation

Failures in steps 3-5 are logged and reported as a status; nothing is raised
and nothing is retried. The intent is gone after the first attempt, which is
what keeps duplicate auth callbacks from booking twice.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, time
from enum import Enum

from booking.errors import BookingError
from booking.services.availability_service import get_salon_timezone
from booking.services.catalog_service import resolve_names_to_ids
from booking.session import SessionContext
from booking.storage.intent_store import PendingBookingIntent, claim_pending_intent
from booking.transactions.booking_transaction import BookingTransaction
from booking.validators.booking_validators import parse_iso_date, parse_time_12h
from database.models import Appointment

logger = logging.getLogger(__name__)


class ReconciliationStatus(str, Enum):
    SKIPPED = "skipped"        # Not authenticated, or already ran for this auth event
    NO_INTENT = "no_intent"
    EXPIRED = "expired"
    UNRESOLVED = "unresolved"  # Service / venue names did not resolve
    FAILED = "failed"          # Booking creation (or a store read) failed
    CREATED = "created"


@dataclass
class ReconciliationResult:
    """
    Outcome of one reconciliation attempt.

    Attributes:
        status: What happened
        appointment: Created appointment when status is CREATED
        error_code: BookingError code when status is FAILED
        error_message: Human-readable failure reason
    """

    status: ReconciliationStatus
    appointment: Appointment | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def created(self) -> bool:
        return self.status == ReconciliationStatus.CREATED


def build_intent_start_time(intent: PendingBookingIntent) -> datetime:
    """Absolute start of the intent's slot in the salon timezone."""
    hour, minute = parse_time_12h(intent.time)
    return datetime.combine(
        parse_iso_date(intent.date), time(hour, minute), tzinfo=get_salon_timezone()
    )


def build_intent_note(intent: PendingBookingIntent) -> str:
    """
    Appointment note for a replayed intent.

    Bookings have no guest contact columns, so the visitor's name and phone
    travel in the note.
    """
    prefix = "Advance booking from landing page" if intent.is_advance_booking else "Booking from landing page"
    return f"{prefix}. Name: {intent.name}, Phone: {intent.phone}"


class DeferredBookingReconciler:
    """
    Turns a stored PendingBookingIntent into a pending appointment.

    Example:
        >>> reconciler = DeferredBookingReconciler()
        >>> result = await reconciler.reconcile(session, client_key="device-123")
        >>> if result.created:
        ...     show_booking_confirmation(result.appointment.id)
    """

    async def reconcile(
        self,
        session: SessionContext,
        client_key: str,
        now: datetime | None = None,
    ) -> ReconciliationResult:
        if not session.needs_reconciliation():
            return ReconciliationResult(status=ReconciliationStatus.SKIPPED)

        # Marked before any I/O so a re-render of the same session never re-fires
        session.mark_reconciled()
        now = now or datetime.now(UTC)
        log_extra = {"client_key": client_key, "user_id": str(session.user_id)}

        try:
            intent = await claim_pending_intent(client_key)
        except Exception as e:
            logger.error(f"Could not read pending booking intent: {e}", extra=log_extra, exc_info=True)
            return ReconciliationResult(
                status=ReconciliationStatus.FAILED, error_code="INTENT_STORE_ERROR", error_message=str(e)
            )

        if intent is None:
            return ReconciliationResult(status=ReconciliationStatus.NO_INTENT)

        if intent.is_expired(now):
            logger.info(
                f"Discarding expired booking intent (age={intent.age(now)})",
                extra=log_extra,
            )
            return ReconciliationResult(status=ReconciliationStatus.EXPIRED)

        try:
            ids = await resolve_names_to_ids(intent.service, intent.venue)
            if ids is None:
                logger.error(
                    f"Could not map salon/service names to IDs: "
                    f"'{intent.service}' @ '{intent.venue}'",
                    extra=log_extra,
                )
                return ReconciliationResult(
                    status=ReconciliationStatus.UNRESOLVED,
                    error_message=f"Unknown service or salon: {intent.service} @ {intent.venue}",
                )

            appointment = await BookingTransaction.execute(
                actor=session.actor,
                client_id=session.user_id,
                service_id=ids.service_id,
                venue_id=ids.venue_id,
                start_time=build_intent_start_time(intent),
                notes=build_intent_note(intent),
                now=now,
            )

        except BookingError as e:
            logger.error(
                f"Error processing pending booking: {e.error_code}: {e.message}",
                extra=log_extra,
            )
            return ReconciliationResult(
                status=ReconciliationStatus.FAILED, error_code=e.error_code, error_message=e.message
            )

        logger.info(
            "Pending booking created successfully",
            extra={**log_extra, "appointment_id": str(appointment.id)},
        )
        return ReconciliationResult(status=ReconciliationStatus.CREATED, appointment=appointment)
