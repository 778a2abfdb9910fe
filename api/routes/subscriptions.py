"""
Subscription endpoints.

- GET /subscriptions/access: access gate decision for the caller
- POST /subscriptions: create the caller's subscription at the end of onboarding (admins only)
- POST /subscriptions/pending/{client_key}: hold onboarding details before sign-up (anonymous)
- POST /subscriptions/pending/{client_key}/apply: create the held subscription, then
  return the access gate decision (admins only)
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, status

from api.auth import CurrentSession
from api.models.booking_models import (
    AccessGateResponse,
    CreateSubscriptionRequest,
    SubscriptionAccessResponse,
    SubscriptionResponse,
)
from api.routes.pending_bookings import ClientKey
from booking.errors import NotPermittedError
from booking.services.subscription_service import (
    AccessGateResult,
    apply_pending_subscription,
    check_access,
    create_subscription,
)
from booking.session import SessionContext
from booking.storage.onboarding_store import PendingSubscriptionIntent, save_pending_subscription
from database.models import UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def _require_admin(session: SessionContext) -> None:
    if session.role != UserRole.ADMIN:
        logger.warning(
            f"Subscription change refused for role {session.role.value}",
            extra={"user_id": str(session.user_id)},
        )
        raise NotPermittedError("Only business owners can manage a subscription.")


def _gate_response(gate: AccessGateResult) -> AccessGateResponse:
    return AccessGateResponse(
        granted=gate.granted,
        screen=gate.screen.value,
        access=SubscriptionAccessResponse(**asdict(gate.access)) if gate.access else None,
        offered_plans=gate.offered_plans,
        trial_available=gate.trial_available,
        reason=gate.reason,
    )


@router.get("/access", response_model=AccessGateResponse)
async def read_access(session: CurrentSession) -> AccessGateResponse:
    return _gate_response(await check_access(session.user_id))


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create(request: CreateSubscriptionRequest, session: CurrentSession) -> SubscriptionResponse:
    _require_admin(session)

    subscription = await create_subscription(
        user_id=session.user_id,
        plan_type=request.plan_type,
        business_name=request.business_name,
        business_phone=request.business_phone,
        business_address=request.business_address,
        business_city=request.business_city,
        business_zip_code=request.business_zip_code,
        billing_period=request.billing_period,
    )
    return SubscriptionResponse.model_validate(subscription)


@router.post("/pending/{client_key}", status_code=status.HTTP_202_ACCEPTED)
async def save_pending(
    request: CreateSubscriptionRequest,
    client_key: str = ClientKey,
) -> dict[str, str]:
    """Hold the onboarding plan and details until the owner logs in. No authentication."""
    intent = PendingSubscriptionIntent(**request.model_dump())
    await save_pending_subscription(client_key, intent)
    return {"status": "saved"}


@router.post("/pending/{client_key}/apply", response_model=AccessGateResponse)
async def apply_pending(session: CurrentSession, client_key: str = ClientKey) -> AccessGateResponse:
    """Create the held subscription (if any) and decide where the owner lands."""
    _require_admin(session)

    await apply_pending_subscription(session.user_id, client_key)
    return _gate_response(await check_access(session.user_id))
