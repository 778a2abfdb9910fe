"""
Pending booking endpoints.

The landing page stores a booking intent anonymously under a client key;
after login the app asks for it to be reconciled into a real appointment.
"""

import logging

from fastapi import APIRouter, Path, status

from api.auth import CurrentSession
from api.models.booking_models import (
    AppointmentResponse,
    PendingBookingRequest,
    ReconcileResponse,
)
from booking.services.reconciliation_service import DeferredBookingReconciler
from booking.storage.intent_store import PendingBookingIntent, save_pending_intent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pending-bookings", tags=["pending-bookings"])

ClientKey = Path(..., min_length=8, max_length=128, pattern=r"^[A-Za-z0-9_-]+$")


@router.post("/{client_key}", status_code=status.HTTP_202_ACCEPTED)
async def save_pending_booking(
    request: PendingBookingRequest,
    client_key: str = ClientKey,
) -> dict[str, str]:
    """Store (or replace) the intent for this client key. No authentication."""
    intent = PendingBookingIntent(
        service=request.service,
        venue=request.salon,
        date=request.date,
        time=request.time,
        name=request.name,
        phone=request.phone,
        is_advance_booking=request.is_advance_booking,
    )
    await save_pending_intent(client_key, intent)
    return {"status": "saved"}


@router.post("/{client_key}/reconcile", response_model=ReconcileResponse)
async def reconcile_pending_booking(
    session: CurrentSession,
    client_key: str = ClientKey,
) -> ReconcileResponse:
    """Turn the stored intent into a pending appointment for the caller."""
    result = await DeferredBookingReconciler().reconcile(session, client_key)
    return ReconcileResponse(
        status=result.status.value,
        appointment=(
            AppointmentResponse.model_validate(result.appointment) if result.appointment else None
        ),
        error_code=result.error_code,
        error_message=result.error_message,
    )
