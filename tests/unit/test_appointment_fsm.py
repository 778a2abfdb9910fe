"""
Unit tests for AppointmentLifecycle - Appointment status state machine.

Tests coverage:
- Transition table: every (from, to) pair
- Role checks: staff/manager/admin vs client, client ownership
- Terminal states are closed (no transition out of completed/cancelled)
- Staff self-assignment on first confirmation only
- Hard delete eligibility
"""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from booking.errors import InvalidTransitionError, NotPermittedError
from booking.fsm.appointment_fsm import AppointmentLifecycle
from booking.fsm.models import AppointmentSnapshot
from booking.session import Actor
from database.models import AppointmentStatus, UserRole

ALL_STATUSES = list(AppointmentStatus)
STAFF_LIKE = [UserRole.STAFF, UserRole.MANAGER, UserRole.ADMIN]


@pytest.fixture
def client_id():
    return uuid4()


@pytest.fixture
def client(client_id):
    return Actor(user_id=client_id, role=UserRole.CLIENT)


def _snapshot(status, client_id, staff_id=None):
    return AppointmentSnapshot(id=uuid4(), client_id=client_id, status=status, staff_id=staff_id)


class TestTransitionTable:
    def test_table_covers_every_status(self):
        assert set(AppointmentLifecycle.TRANSITIONS) == set(AppointmentStatus)

    @pytest.mark.parametrize("role", STAFF_LIKE)
    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED),
        ],
    )
    def test_staff_roles_allowed_transitions(self, role, from_status, to_status, client_id):
        actor = Actor(user_id=uuid4(), role=role)

        plan = AppointmentLifecycle.plan_transition(_snapshot(from_status, client_id), to_status, actor)

        assert plan.from_status == from_status
        assert plan.to_status == to_status
        assert plan.updates["status"] == to_status

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (AppointmentStatus.PENDING, AppointmentStatus.COMPLETED),
            (AppointmentStatus.PENDING, AppointmentStatus.PENDING),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.PENDING),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.CONFIRMED),
        ],
    )
    def test_transitions_outside_table_are_rejected(self, from_status, to_status, client_id):
        actor = Actor(user_id=uuid4(), role=UserRole.ADMIN)

        with pytest.raises(InvalidTransitionError):
            AppointmentLifecycle.plan_transition(_snapshot(from_status, client_id), to_status, actor)

    @pytest.mark.parametrize("terminal", [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED])
    @pytest.mark.parametrize("target", ALL_STATUSES)
    @pytest.mark.parametrize("role", list(UserRole))
    def test_terminal_states_are_closed(self, terminal, target, role, client_id):
        actor = Actor(user_id=client_id, role=role)

        with pytest.raises(InvalidTransitionError):
            AppointmentLifecycle.plan_transition(_snapshot(terminal, client_id), target, actor)

    def test_allowed_targets(self):
        assert set(
            AppointmentLifecycle.allowed_targets(AppointmentStatus.PENDING, UserRole.STAFF)
        ) == {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
        assert AppointmentLifecycle.allowed_targets(AppointmentStatus.PENDING, UserRole.CLIENT) == [
            AppointmentStatus.CANCELLED
        ]
        assert AppointmentLifecycle.allowed_targets(AppointmentStatus.COMPLETED, UserRole.ADMIN) == []


class TestClientRules:
    @pytest.mark.parametrize("from_status", [AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED])
    def test_client_can_cancel_own_appointment(self, from_status, client, client_id):
        plan = AppointmentLifecycle.plan_transition(
            _snapshot(from_status, client_id), AppointmentStatus.CANCELLED, client
        )
        assert plan.to_status == AppointmentStatus.CANCELLED
        assert "staff_id" not in plan.updates

    def test_client_cannot_cancel_someone_elses_appointment(self, client):
        with pytest.raises(NotPermittedError):
            AppointmentLifecycle.plan_transition(
                _snapshot(AppointmentStatus.PENDING, uuid4()), AppointmentStatus.CANCELLED, client
            )

    def test_client_cannot_confirm(self, client, client_id):
        with pytest.raises(NotPermittedError):
            AppointmentLifecycle.plan_transition(
                _snapshot(AppointmentStatus.PENDING, client_id), AppointmentStatus.CONFIRMED, client
            )

    def test_client_cannot_complete(self, client, client_id):
        with pytest.raises(NotPermittedError):
            AppointmentLifecycle.plan_transition(
                _snapshot(AppointmentStatus.CONFIRMED, client_id), AppointmentStatus.COMPLETED, client
            )


class TestStaffAssignment:
    def test_first_confirmation_assigns_acting_staff(self, client_id):
        staff = Actor(user_id=uuid4(), role=UserRole.STAFF)

        plan = AppointmentLifecycle.plan_transition(
            _snapshot(AppointmentStatus.PENDING, client_id), AppointmentStatus.CONFIRMED, staff
        )

        assert plan.updates["staff_id"] == staff.user_id
        assert plan.assigned_staff_id == staff.user_id

    def test_existing_staff_is_kept(self, client_id):
        assigned = uuid4()
        manager = Actor(user_id=uuid4(), role=UserRole.MANAGER)

        plan = AppointmentLifecycle.plan_transition(
            _snapshot(AppointmentStatus.PENDING, client_id, staff_id=assigned),
            AppointmentStatus.CONFIRMED,
            manager,
        )

        assert "staff_id" not in plan.updates
        assert plan.assigned_staff_id is None

    def test_second_confirmation_is_rejected(self, client_id):
        """Staff A confirms; staff B confirming the same appointment afterwards fails."""
        staff_a = Actor(user_id=uuid4(), role=UserRole.STAFF)
        staff_b = Actor(user_id=uuid4(), role=UserRole.STAFF)
        snapshot = _snapshot(AppointmentStatus.PENDING, client_id)

        plan = AppointmentLifecycle.plan_transition(snapshot, AppointmentStatus.CONFIRMED, staff_a)
        confirmed = AppointmentSnapshot(
            id=snapshot.id,
            client_id=client_id,
            status=plan.to_status,
            staff_id=plan.updates["staff_id"],
        )

        with pytest.raises(InvalidTransitionError):
            AppointmentLifecycle.plan_transition(confirmed, AppointmentStatus.CONFIRMED, staff_b)
        assert confirmed.staff_id == staff_a.user_id

    def test_updated_at_uses_given_now(self, client_id):
        now = datetime(2025, 3, 14, 2, 0, tzinfo=UTC)
        staff = Actor(user_id=uuid4(), role=UserRole.STAFF)

        plan = AppointmentLifecycle.plan_transition(
            _snapshot(AppointmentStatus.PENDING, client_id), AppointmentStatus.CONFIRMED, staff, now=now
        )

        assert plan.updates["updated_at"] == now


class TestHardDelete:
    @pytest.mark.parametrize(
        "status,allowed",
        [
            (AppointmentStatus.PENDING, False),
            (AppointmentStatus.CONFIRMED, False),
            (AppointmentStatus.COMPLETED, True),
            (AppointmentStatus.CANCELLED, True),
        ],
    )
    def test_can_hard_delete(self, status, allowed):
        assert AppointmentLifecycle.can_hard_delete(status) is allowed

    def test_is_terminal(self):
        assert AppointmentLifecycle.is_terminal(AppointmentStatus.CANCELLED)
        assert not AppointmentLifecycle.is_terminal(AppointmentStatus.PENDING)
