"""
FSM data models.

This module defines the data structures shared by the appointment lifecycle
and the dashboard flow controller:
- AppointmentSnapshot: The fields of an appointment the lifecycle reads
- TransitionPlan: Column updates produced by a valid lifecycle transition
- Screen / FlowEvent: Screens and user events of the dashboard flow
- FlowResult: Result of a flow controller transition
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from database.models import AppointmentStatus


@dataclass(frozen=True)
class AppointmentSnapshot:
    """Lifecycle-relevant view of an appointment row."""

    id: UUID
    client_id: UUID
    status: AppointmentStatus
    staff_id: UUID | None = None

    @classmethod
    def from_model(cls, appointment: Any) -> "AppointmentSnapshot":
        return cls(
            id=appointment.id,
            client_id=appointment.client_id,
            status=appointment.status,
            staff_id=appointment.staff_id,
        )


@dataclass
class TransitionPlan:
    """
    Outcome of a valid lifecycle transition.

    Attributes:
        appointment_id: Appointment being changed
        from_status: Status before the write
        to_status: Status after the write
        updates: Column values to write (always includes status)
        assigned_staff_id: Set when the transition assigns the acting staff
    """

    appointment_id: UUID
    from_status: AppointmentStatus
    to_status: AppointmentStatus
    updates: dict[str, Any] = field(default_factory=dict)
    assigned_staff_id: UUID | None = None


class Screen(str, Enum):
    """Screens of the dashboard flow."""

    LANDING = "landing"
    LOGIN = "login"
    OTP_VERIFICATION = "otp-verification"
    ADMIN_DASHBOARD = "admin-dashboard"
    CLIENT_APP = "client-app"
    ONBOARDING = "onboarding"
    SUBSCRIPTION_REQUIRED = "subscription-required"


class FlowEvent(str, Enum):
    """User actions and auth outcomes that move the dashboard flow."""

    GET_STARTED = "get_started"
    OPEN_LOGIN = "open_login"
    BACK_TO_LANDING = "back_to_landing"
    NAVIGATE_TO_OTP = "navigate_to_otp"
    BACK_FROM_OTP = "back_from_otp"
    START_ONBOARDING = "start_onboarding"
    ONBOARDING_COMPLETE = "onboarding_complete"
    BACK_FROM_ONBOARDING = "back_from_onboarding"
    REQUIRE_LOGIN = "require_login"
    LOGIN_SUCCEEDED = "login_succeeded"
    OTP_VERIFIED = "otp_verified"
    EMAIL_CONFIRMED = "email_confirmed"
    LOGOUT = "logout"


@dataclass
class FlowResult:
    """
    Result of a dashboard flow transition.

    Attributes:
        success: Whether the event was accepted from the current screen
        screen: Screen after handling the event
        previous_screen: Screen before handling the event
        event: Event handled
        booking_created_id: Appointment created by deferred reconciliation, if any
        validation_errors: Why the event was rejected
    """

    success: bool
    screen: Screen
    previous_screen: Screen
    event: FlowEvent
    booking_created_id: UUID | None = None
    validation_errors: list[str] = field(default_factory=list)


@dataclass
class PendingOtpCredentials:
    """Login credentials held only until OTP verification completes."""

    email: str
    password: str = field(repr=False)
    captured_at: datetime | None = None
