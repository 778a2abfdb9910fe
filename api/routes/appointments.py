"""
Appointment endpoints.

Provides REST endpoints for:
- Slot availability for a service at a venue on a day
- Creating appointments (always pending)
- Status transitions, client cancellation and hard delete
"""

import logging
from datetime import date, datetime, time
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from api.auth import CurrentSession
from api.models.booking_models import (
    AppointmentResponse,
    CreateAppointmentRequest,
    SlotsResponse,
    StatusUpdateRequest,
    TimeSlotResponse,
)
from booking.services.availability_service import get_salon_timezone, get_slots_for_date
from booking.services.lifecycle_service import (
    cancel_appointment,
    delete_appointment,
    get_appointment,
    set_appointment_status,
)
from booking.transactions.booking_transaction import BookingTransaction
from booking.validators.booking_validators import parse_time_12h

logger = logging.getLogger(__name__)

router = APIRouter(tags=["appointments"])


def _requested_start_time(request: CreateAppointmentRequest) -> datetime:
    if request.start_time is not None:
        return request.start_time
    if request.slot_date is None or request.slot_time is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either start_time or slot_date and slot_time are required",
        )
    hour, minute = parse_time_12h(request.slot_time)
    return datetime.combine(request.slot_date, time(hour, minute), tzinfo=get_salon_timezone())


@router.get("/slots", response_model=SlotsResponse)
async def list_slots(
    service_id: UUID = Query(...),
    venue_id: UUID = Query(...),
    target_date: date = Query(..., alias="date"),
) -> SlotsResponse:
    """Availability snapshot for one local day."""
    slots = await get_slots_for_date(service_id, venue_id, target_date)
    return SlotsResponse(
        service_id=service_id,
        venue_id=venue_id,
        date=target_date,
        slots=[
            TimeSlotResponse(time=s.time, hour=s.hour, minute=s.minute, available=s.available)
            for s in slots
        ],
    )


@router.post(
    "/appointments",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    request: CreateAppointmentRequest,
    session: CurrentSession,
) -> AppointmentResponse:
    appointment = await BookingTransaction.execute(
        actor=session.actor,
        client_id=request.client_id or session.user_id,
        service_id=request.service_id,
        venue_id=request.venue_id,
        start_time=_requested_start_time(request),
        notes=request.notes,
    )
    return AppointmentResponse.model_validate(appointment)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def read_appointment(appointment_id: UUID, session: CurrentSession) -> AppointmentResponse:
    appointment = await get_appointment(appointment_id)
    if session.actor.is_client and appointment.client_id != session.user_id:
        # Clients only see their own appointments
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    return AppointmentResponse.model_validate(appointment)


@router.patch("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: UUID,
    request: StatusUpdateRequest,
    session: CurrentSession,
) -> AppointmentResponse:
    appointment = await set_appointment_status(appointment_id, request.status, session.actor)
    return AppointmentResponse.model_validate(appointment)


@router.post("/appointments/{appointment_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel(appointment_id: UUID, session: CurrentSession) -> None:
    await cancel_appointment(appointment_id, session.actor)


@router.delete("/appointments/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete(appointment_id: UUID, session: CurrentSession) -> None:
    await delete_appointment(appointment_id, session.actor)
