"""
Booking Transaction Handler - the single creation path for appointments.

Used by the client booking endpoint, the staff/admin walk-in endpoint and
the deferred booking reconciler. Flow:

1. Validate identifiers (service / venue ids must be UUIDs)
2. Reject past start times and starts off the daily slot grid
3. Check the actor may book for this client (clients book for themselves)
4. Look up the service (must belong to the venue) for the end time
5. Pre-check for an active appointment at the exact same slot
6. Insert the appointment as PENDING and commit

The pre-check is best-effort: two users can both pass it. The partial
unique index uq_bookings_active_slot rejects the second INSERT, which is
reported as SlotConflictError like a pre-check hit. Nothing is retried.
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from booking.errors import (
    BookingError,
    BookingValidationError,
    NotPermittedError,
    SlotConflictError,
    StoreError,
)
from booking.services.availability_service import generate_time_slots, get_salon_timezone
from booking.session import Actor
from booking.validators.booking_validators import (
    find_active_appointment_at,
    validate_future_start,
    validate_identifier,
    validate_slot_on_grid,
)
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus, Service

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes surfaced by the INSERT
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
INSUFFICIENT_PRIVILEGE = "42501"


def _sqlstate(error: SQLAlchemyError) -> str | None:
    orig = getattr(error, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _translate_integrity_error(error: IntegrityError, trace_id: str) -> BookingError:
    """Map a rejected INSERT to the caller-facing error class."""
    code = _sqlstate(error)
    message = str(error.orig) if error.orig is not None else str(error)

    if code == UNIQUE_VIOLATION or "uq_bookings_active_slot" in message:
        logger.warning(f"[{trace_id}] Slot taken between availability read and write")
        return SlotConflictError(details={"reason": "unique_violation"})

    if code == FOREIGN_KEY_VIOLATION:
        return BookingValidationError(
            "Invalid service or salon ID. Please try again.",
            error_code="INVALID_SERVICE_OR_VENUE",
        )

    return StoreError(message)


class BookingTransaction:
    """
    Transaction handler for creating appointments.

    Every appointment starts PENDING with no staff assigned.
    """

    @staticmethod
    async def execute(
        actor: Actor,
        client_id: UUID,
        service_id: UUID | str,
        venue_id: UUID | str,
        start_time: datetime,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Appointment:
        """
        Create a pending appointment.

        Args:
            actor: Acting user; clients may only book for themselves
            client_id: Client the appointment is for
            service_id: Service UUID (or its string form)
            venue_id: Venue UUID (or its string form)
            start_time: Slot start (timezone-aware)
            notes: Free-text notes
            now: Current moment, defaults to the wall clock

        Returns:
            The committed Appointment

        Raises:
            BookingValidationError: Malformed ids, unknown service/venue, past or off-grid slot
            NotPermittedError: Client booking on behalf of someone else
            SlotConflictError: An active appointment already holds the slot
            StoreError: Any other database failure

        Example:
            >>> appointment = await BookingTransaction.execute(
            ...     actor=session.actor,
            ...     client_id=session.user_id,
            ...     service_id="770e8400-e29b-41d4-a716-446655440002",
            ...     venue_id="660e8400-e29b-41d4-a716-446655440001",
            ...     start_time=datetime(2025, 3, 14, 10, 0, tzinfo=MANILA_TZ),
            ... )
            >>> appointment.status
            <AppointmentStatus.PENDING: 'pending'>
        """
        trace_id = f"{client_id}_{start_time.isoformat()}"
        logger.info(
            f"[{trace_id}] Starting booking transaction",
            extra={"user_id": str(actor.user_id)},
        )

        service_check = validate_identifier(service_id, "service_id")
        if not service_check["valid"]:
            logger.warning(f"[{trace_id}] {service_check['error_message']}")
            raise BookingValidationError(
                service_check["error_message"], error_code=service_check["error_code"]
            )

        venue_check = validate_identifier(venue_id, "shop_id")
        if not venue_check["valid"]:
            logger.warning(f"[{trace_id}] {venue_check['error_message']}")
            raise BookingValidationError(
                venue_check["error_message"], error_code=venue_check["error_code"]
            )

        service_uuid: UUID = service_check["value"]
        venue_uuid: UUID = venue_check["value"]

        time_check = validate_future_start(start_time, now or datetime.now(UTC))
        if not time_check["valid"]:
            logger.warning(f"[{trace_id}] {time_check['error_message']}")
            raise BookingValidationError(
                time_check["error_message"], error_code=time_check["error_code"]
            )

        grid = [(slot.hour, slot.minute) for slot in generate_time_slots()]
        grid_check = validate_slot_on_grid(start_time, get_salon_timezone(), grid)
        if not grid_check["valid"]:
            logger.warning(f"[{trace_id}] {grid_check['error_message']}")
            raise BookingValidationError(
                grid_check["error_message"], error_code=grid_check["error_code"]
            )

        if actor.is_client and actor.user_id != client_id:
            logger.warning(f"[{trace_id}] Client attempted to book for another client")
            raise NotPermittedError(details={"reason": "client_mismatch"})

        try:
            async with get_async_session() as session:
                result = await session.execute(select(Service).where(Service.id == service_uuid))
                service = result.scalar_one_or_none()

                if service is None or service.venue_id != venue_uuid:
                    logger.warning(f"[{trace_id}] Service {service_uuid} not offered at venue {venue_uuid}")
                    raise BookingValidationError(
                        "Invalid service or salon ID. Please try again.",
                        error_code="INVALID_SERVICE_OR_VENUE",
                    )

                conflict = await find_active_appointment_at(
                    session, service_uuid, venue_uuid, start_time
                )
                if conflict is not None:
                    raise SlotConflictError(details={"conflicting_appointment_id": str(conflict.id)})

                appointment = Appointment(
                    client_id=client_id,
                    service_id=service_uuid,
                    venue_id=venue_uuid,
                    start_time=start_time,
                    end_time=start_time + timedelta(minutes=service.duration_minutes),
                    status=AppointmentStatus.PENDING,
                    notes=notes,
                )
                session.add(appointment)
                await session.commit()
                await session.refresh(appointment)

        except BookingError:
            raise
        except IntegrityError as e:
            logger.error(f"[{trace_id}] Database integrity error: {e}", exc_info=True)
            raise _translate_integrity_error(e, trace_id) from e
        except SQLAlchemyError as e:
            logger.error(f"[{trace_id}] Database error: {e}", exc_info=True)
            if _sqlstate(e) == INSUFFICIENT_PRIVILEGE:
                raise NotPermittedError(str(e)) from e
            raise StoreError(str(e)) from e

        logger.info(
            f"[{trace_id}] Appointment committed (PENDING)",
            extra={"appointment_id": str(appointment.id)},
        )
        return appointment
