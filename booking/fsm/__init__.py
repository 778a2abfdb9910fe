"""
State machines for appointments and the dashboard flow.

Public exports:
    - AppointmentLifecycle: Status transition rules for appointments
    - AppointmentSnapshot / TransitionPlan: Lifecycle input and output
    - Screen / FlowEvent / FlowResult: Dashboard flow vocabulary

DashboardFlow lives in booking.fsm.flow_controller and is imported from
there directly (it depends on the services layer).
"""

from booking.fsm.appointment_fsm import AppointmentLifecycle
from booking.fsm.models import (
    AppointmentSnapshot,
    FlowEvent,
    FlowResult,
    PendingOtpCredentials,
    Screen,
    TransitionPlan,
)

__all__ = [
    "AppointmentLifecycle",
    "AppointmentSnapshot",
    "FlowEvent",
    "FlowResult",
    "PendingOtpCredentials",
    "Screen",
    "TransitionPlan",
]
