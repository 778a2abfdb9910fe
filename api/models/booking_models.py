"""Pydantic request/response models for the booking API."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from booking.validators.booking_validators import parse_time_12h
from database.models import AppointmentStatus, PlanType, SubscriptionStatus


class TimeSlotResponse(BaseModel):
    time: str
    hour: int
    minute: int
    available: bool


class SlotsResponse(BaseModel):
    service_id: UUID
    venue_id: UUID
    date: date
    slots: list[TimeSlotResponse]


class CreateAppointmentRequest(BaseModel):
    """
    New appointment.

    Either start_time, or slot_date + slot_time (12-hour display form) must
    be given.
    client_id defaults to the caller; staff may book for a client.
    """

    service_id: str
    venue_id: str
    start_time: datetime | None = None
    slot_date: date | None = None
    slot_time: str | None = None
    client_id: UUID | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("slot_time")
    @classmethod
    def validate_slot_time(cls, v: str | None) -> str | None:
        if v is not None:
            parse_time_12h(v)
        return v


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    service_id: UUID
    venue_id: UUID
    staff_id: UUID | None
    start_time: datetime
    end_time: datetime | None
    status: AppointmentStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus


class PendingBookingRequest(BaseModel):
    """Booking picked on the landing page before login."""

    model_config = ConfigDict(populate_by_name=True)

    service: str = Field(min_length=1)
    salon: str = Field(min_length=1)
    date: str
    time: str
    name: str = ""
    phone: str = ""
    is_advance_booking: bool = Field(default=False, alias="isAdvanceBooking")


class ReconcileResponse(BaseModel):
    status: str
    appointment: AppointmentResponse | None = None
    error_code: str | None = None
    error_message: str | None = None


class SubscriptionAccessResponse(BaseModel):
    has_access: bool
    plan_type: PlanType | None
    status: SubscriptionStatus | None
    expires_at: datetime | None
    trial_ends_at: datetime | None
    days_remaining: int | None


class AccessGateResponse(BaseModel):
    granted: bool
    screen: str
    access: SubscriptionAccessResponse | None = None
    offered_plans: list[PlanType]
    trial_available: bool
    reason: str | None = None


class CreateSubscriptionRequest(BaseModel):
    plan_type: PlanType
    business_name: str = Field(min_length=1, max_length=200)
    business_phone: str = Field(min_length=1, max_length=30)
    business_address: str = ""
    business_city: str = ""
    business_zip_code: str = ""
    billing_period: Literal["monthly", "yearly"] = "monthly"


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    plan_type: PlanType
    status: SubscriptionStatus
    started_at: datetime
    expires_at: datetime | None
    trial_ends_at: datetime | None
    price: Decimal
    billing_period: str
