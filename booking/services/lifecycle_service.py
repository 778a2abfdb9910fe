"""
Appointment lifecycle service - Applies status changes to stored appointments.

Operations:
- set_appointment_status: Staff/manager/admin (and client cancel) transitions
- cancel_appointment: Cancel; clients take the single-write convenience path
- delete_appointment: Irreversible removal of completed/cancelled appointments

Every operation is one user-triggered write. Failures are raised to the
caller (no retry): AppointmentNotFoundError, NotPermittedError,
InvalidTransitionError, StoreError.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from booking.errors import (
    AppointmentNotFoundError,
    BookingError,
    InvalidTransitionError,
    NotPermittedError,
    StoreError,
)
from booking.fsm.appointment_fsm import AppointmentLifecycle
from booking.fsm.models import AppointmentSnapshot
from booking.session import Actor
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus, UserRole

logger = logging.getLogger(__name__)

DELETE_ROLES = frozenset({UserRole.ADMIN, UserRole.CLIENT})


async def get_appointment(appointment_id: UUID) -> Appointment:
    """
    Load one appointment.

    Raises:
        AppointmentNotFoundError: No appointment with that id
        StoreError: Database read failed
    """
    try:
        async with get_async_session() as session:
            result = await session.execute(
                select(Appointment).where(Appointment.id == appointment_id)
            )
            appointment = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Error loading appointment {appointment_id}: {e}", exc_info=True)
        raise StoreError(str(e)) from e

    if appointment is None:
        raise AppointmentNotFoundError(details={"appointment_id": str(appointment_id)})
    return appointment


async def set_appointment_status(
    appointment_id: UUID,
    new_status: AppointmentStatus,
    actor: Actor,
) -> Appointment:
    """
    Move an appointment to new_status following the lifecycle table.

    The row is locked for the read-check-write so a concurrent confirmation
    cannot assign a second staff member.

    Args:
        appointment_id: Appointment to change
        new_status: Requested status
        actor: Acting user

    Returns:
        The updated Appointment

    Raises:
        AppointmentNotFoundError, InvalidTransitionError, NotPermittedError, StoreError
    """
    try:
        async with get_async_session() as session:
            result = await session.execute(
                select(Appointment)
                .where(Appointment.id == appointment_id)
                .with_for_update()
            )
            appointment = result.scalar_one_or_none()

            if appointment is None:
                logger.warning(
                    f"Status change on missing appointment -> {new_status.value}",
                    extra={"appointment_id": str(appointment_id)},
                )
                raise AppointmentNotFoundError(details={"appointment_id": str(appointment_id)})

            plan = AppointmentLifecycle.plan_transition(
                AppointmentSnapshot.from_model(appointment), new_status, actor
            )

            for column, value in plan.updates.items():
                setattr(appointment, column, value)

            await session.commit()

    except BookingError:
        raise
    except SQLAlchemyError as e:
        logger.error(
            f"Error updating appointment status to {new_status.value}: {e}",
            extra={"appointment_id": str(appointment_id)},
            exc_info=True,
        )
        raise StoreError(str(e)) from e

    logger.info(
        f"Appointment status updated: {plan.from_status.value} -> {plan.to_status.value}",
        extra={"appointment_id": str(appointment_id), "user_id": str(actor.user_id)},
    )
    return appointment


async def cancel_appointment(appointment_id: UUID, actor: Actor) -> None:
    """
    Cancel an appointment.

    Staff, managers and admins go through set_appointment_status. Clients
    use the convenience path: a single conditional UPDATE limited to their
    own pending/confirmed appointments, with no status read beforehand.
    When nothing is updated the row is inspected only to report why.
    """
    if not actor.is_client:
        await set_appointment_status(appointment_id, AppointmentStatus.CANCELLED, actor)
        return

    stmt = (
        update(Appointment)
        .where(Appointment.id == appointment_id)
        .where(Appointment.client_id == actor.user_id)
        .where(Appointment.status.in_(AppointmentLifecycle.client_cancellable_statuses()))
        .values(status=AppointmentStatus.CANCELLED, updated_at=datetime.now(UTC))
    )

    try:
        async with get_async_session() as session:
            result = await session.execute(stmt)
            await session.commit()
            updated = result.rowcount
    except SQLAlchemyError as e:
        logger.error(
            f"Error cancelling appointment: {e}",
            extra={"appointment_id": str(appointment_id)},
            exc_info=True,
        )
        raise StoreError(str(e)) from e

    if updated:
        logger.info(
            "Appointment cancelled by client",
            extra={"appointment_id": str(appointment_id), "user_id": str(actor.user_id)},
        )
        return

    appointment = await get_appointment(appointment_id)
    if appointment.client_id != actor.user_id:
        raise NotPermittedError(details={"role": actor.role.value, "reason": "not_owner"})
    raise InvalidTransitionError(
        f"Cannot cancel a {appointment.status.value} appointment.",
        details={"from_status": appointment.status.value, "to_status": AppointmentStatus.CANCELLED.value},
    )


async def delete_appointment(appointment_id: UUID, actor: Actor) -> None:
    """
    Permanently delete a completed or cancelled appointment.

    Allowed for admins and for the client who owns the appointment.

    Raises:
        AppointmentNotFoundError, NotPermittedError, InvalidTransitionError, StoreError
    """
    if actor.role not in DELETE_ROLES:
        raise NotPermittedError(details={"role": actor.role.value, "operation": "delete"})

    try:
        async with get_async_session() as session:
            result = await session.execute(
                select(Appointment)
                .where(Appointment.id == appointment_id)
                .with_for_update()
            )
            appointment = result.scalar_one_or_none()

            if appointment is None:
                raise AppointmentNotFoundError(details={"appointment_id": str(appointment_id)})

            if actor.is_client and appointment.client_id != actor.user_id:
                raise NotPermittedError(details={"role": actor.role.value, "reason": "not_owner"})

            if not AppointmentLifecycle.can_hard_delete(appointment.status):
                raise InvalidTransitionError(
                    "Only completed or cancelled appointments can be deleted.",
                    details={"status": appointment.status.value},
                )

            await session.execute(delete(Appointment).where(Appointment.id == appointment_id))
            await session.commit()

    except BookingError:
        raise
    except SQLAlchemyError as e:
        logger.error(
            f"Error deleting appointment: {e}",
            extra={"appointment_id": str(appointment_id)},
            exc_info=True,
        )
        raise StoreError(str(e)) from e

    logger.info(
        "Appointment permanently deleted",
        extra={"appointment_id": str(appointment_id), "user_id": str(actor.user_id)},
    )
