"""
AppointmentLifecycle - Finite State Machine for appointment status.

States: pending (initial) -> confirmed -> completed, with cancelled reachable
from pending or confirmed. completed and cancelled are terminal: the only
operation left is an explicit hard delete, which is not a transition.

Key responsibilities:
- Validate a status change against the transition table
- Check the acting role (and ownership for clients)
- Produce the column updates for the write, including staff
  self-assignment on first confirmation
- Log all accepted and rejected transitions
"""

import logging
from datetime import UTC, datetime
from typing import ClassVar

from booking.errors import InvalidTransitionError, NotPermittedError
from booking.fsm.models import AppointmentSnapshot, TransitionPlan
from booking.session import Actor
from database.models import (
    ACTIVE_APPOINTMENT_STATUSES,
    TERMINAL_APPOINTMENT_STATUSES,
    AppointmentStatus,
    UserRole,
)

logger = logging.getLogger(__name__)

STAFF_ROLES: frozenset[UserRole] = frozenset({UserRole.STAFF, UserRole.MANAGER, UserRole.ADMIN})
CANCEL_ROLES: frozenset[UserRole] = STAFF_ROLES | {UserRole.CLIENT}


class AppointmentLifecycle:
    """
    Transition rules for a single appointment.

    Stateless: every method takes the current snapshot and returns a plan or
    raises, so the caller decides when to read and write.

    Example:
        >>> plan = AppointmentLifecycle.plan_transition(
        ...     snapshot, AppointmentStatus.CONFIRMED, Actor(staff_id, UserRole.STAFF)
        ... )
        >>> plan.updates["staff_id"] == staff_id
        True
    """

    # from_status -> {to_status: roles allowed}
    TRANSITIONS: ClassVar[dict[AppointmentStatus, dict[AppointmentStatus, frozenset[UserRole]]]] = {
        AppointmentStatus.PENDING: {
            AppointmentStatus.CONFIRMED: STAFF_ROLES,
            AppointmentStatus.CANCELLED: CANCEL_ROLES,
        },
        AppointmentStatus.CONFIRMED: {
            AppointmentStatus.COMPLETED: STAFF_ROLES,
            AppointmentStatus.CANCELLED: CANCEL_ROLES,
        },
        AppointmentStatus.COMPLETED: {},
        AppointmentStatus.CANCELLED: {},
    }

    @classmethod
    def allowed_targets(cls, status: AppointmentStatus, role: UserRole) -> list[AppointmentStatus]:
        """Statuses the given role may move an appointment to from status."""
        return [
            target for target, roles in cls.TRANSITIONS.get(status, {}).items() if role in roles
        ]

    @classmethod
    def is_terminal(cls, status: AppointmentStatus) -> bool:
        return status in TERMINAL_APPOINTMENT_STATUSES

    @classmethod
    def can_hard_delete(cls, status: AppointmentStatus) -> bool:
        """Hard delete is only allowed once an appointment is completed or cancelled."""
        return status in TERMINAL_APPOINTMENT_STATUSES

    @classmethod
    def plan_transition(
        cls,
        appointment: AppointmentSnapshot,
        target: AppointmentStatus,
        actor: Actor,
        now: datetime | None = None,
    ) -> TransitionPlan:
        """
        Validate a status change and build the update to write.

        Args:
            appointment: Current state of the appointment
            target: Requested status
            actor: Who is asking

        Returns:
            TransitionPlan with the column updates

        Raises:
            InvalidTransitionError: target is not reachable from the current status
            NotPermittedError: actor's role (or ownership) does not allow it
        """
        current = appointment.status
        allowed = cls.TRANSITIONS.get(current, {})

        if target not in allowed:
            logger.warning(
                "Lifecycle transition rejected: %s -> %s | actor_role=%s | reason=invalid_transition",
                current.value,
                target.value,
                actor.role.value,
                extra={"appointment_id": str(appointment.id)},
            )
            raise InvalidTransitionError(
                f"Cannot change a {current.value} appointment to {target.value}.",
                details={"from_status": current.value, "to_status": target.value},
            )

        if actor.role not in allowed[target]:
            logger.warning(
                "Lifecycle transition rejected: %s -> %s | actor_role=%s | reason=role",
                current.value,
                target.value,
                actor.role.value,
                extra={"appointment_id": str(appointment.id)},
            )
            raise NotPermittedError(details={"role": actor.role.value, "to_status": target.value})

        if actor.is_client and appointment.client_id != actor.user_id:
            logger.warning(
                "Lifecycle transition rejected: client is not the appointment owner",
                extra={"appointment_id": str(appointment.id), "user_id": str(actor.user_id)},
            )
            raise NotPermittedError(details={"role": actor.role.value, "reason": "not_owner"})

        plan = TransitionPlan(
            appointment_id=appointment.id,
            from_status=current,
            to_status=target,
            updates={"status": target, "updated_at": now or datetime.now(UTC)},
        )

        # First confirmation assigns the confirming staff member
        if target == AppointmentStatus.CONFIRMED and appointment.staff_id is None:
            plan.updates["staff_id"] = actor.user_id
            plan.assigned_staff_id = actor.user_id

        logger.info(
            "Lifecycle transition planned: %s -> %s | actor_role=%s | assigns_staff=%s",
            current.value,
            target.value,
            actor.role.value,
            plan.assigned_staff_id is not None,
            extra={"appointment_id": str(appointment.id)},
        )
        return plan

    @classmethod
    def client_cancellable_statuses(cls) -> tuple[AppointmentStatus, ...]:
        """Statuses a client's convenience cancel may overwrite."""
        return ACTIVE_APPOINTMENT_STATUSES
