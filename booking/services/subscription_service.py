"""
Subscription access gate.

Access is derived from the user's most recent subscription record on every
call; nothing is cached. An admin reaches the dashboard only when the derived
access is granted. If the store cannot be read, access is denied and the
renewal screen is shown without the free trial.

The plan picked during onboarding is replayed by apply_pending_subscription()
on the owner's next login, before the gate runs.

Usage:
    >>> gate = await check_access(user_id)
    >>> if not gate.granted:
    ...     show(gate.screen, plans=gate.offered_plans)
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from booking.errors import BookingError, BookingValidationError, StoreError
from booking.fsm.models import Screen
from booking.storage.onboarding_store import claim_pending_subscription
from database.connection import get_async_session
from database.models import PlanType, Subscription, SubscriptionStatus
from shared.config import get_settings

logger = logging.getLogger(__name__)

ALL_PLANS = [PlanType.FREE_TRIAL, PlanType.PRO, PlanType.ENTERPRISE]
RENEWAL_PLANS = [PlanType.PRO, PlanType.ENTERPRISE]
BILLING_PERIODS = ("monthly", "yearly")


@dataclass
class SubscriptionAccess:
    """Access derived from one subscription record."""

    has_access: bool
    plan_type: PlanType | None
    status: SubscriptionStatus | None
    expires_at: datetime | None = None
    trial_ends_at: datetime | None = None
    days_remaining: int | None = None


@dataclass
class AccessGateResult:
    """
    Decision for a privileged transition.

    Attributes:
        granted: Whether the admin dashboard may be shown
        screen: Screen to route to
        access: Derived access, None when no record exists or the read failed
        offered_plans: Plans selectable on the subscription screen
        trial_available: Whether the free trial may be offered
        reason: Short machine-readable reason for a denial
    """

    granted: bool
    screen: Screen
    access: SubscriptionAccess | None = None
    offered_plans: list[PlanType] = field(default_factory=list)
    trial_available: bool = False
    reason: str | None = None


def _days_until(end: datetime, now: datetime) -> int:
    return max(0, math.ceil((end - now).total_seconds() / 86400))


def compute_subscription_access(subscription: Subscription, now: datetime) -> SubscriptionAccess:
    """
    Derive access from a subscription record.

    Rules:
        - status must be active
        - free-trial: trial_ends_at must be in the future
        - pro: expires_at unset or in the future
        - enterprise: never expires
    """
    if subscription.plan_type == PlanType.FREE_TRIAL:
        end = subscription.trial_ends_at
        within_term = end is not None and end > now
    elif subscription.plan_type == PlanType.PRO:
        end = subscription.expires_at
        within_term = end is None or end > now
    else:
        end = None
        within_term = True

    has_access = subscription.status == SubscriptionStatus.ACTIVE and within_term

    return SubscriptionAccess(
        has_access=has_access,
        plan_type=subscription.plan_type,
        status=subscription.status,
        expires_at=subscription.expires_at,
        trial_ends_at=subscription.trial_ends_at,
        days_remaining=_days_until(end, now) if end is not None else None,
    )


async def get_latest_subscription(user_id: UUID) -> Subscription | None:
    """
    Most recent subscription record for a user.

    Raises:
        StoreError: Database read failed
    """
    try:
        async with get_async_session() as session:
            result = await session.execute(
                select(Subscription)
                .where(Subscription.user_id == user_id)
                .order_by(Subscription.created_at.desc())
                .limit(1)
            )
            return result.scalars().first()
    except SQLAlchemyError as e:
        logger.error(
            f"Error loading subscription: {e}",
            extra={"user_id": str(user_id)},
            exc_info=True,
        )
        raise StoreError(str(e)) from e


async def get_subscription_access(
    user_id: UUID, now: datetime | None = None
) -> SubscriptionAccess | None:
    """Derived access for the user's latest subscription, None when they have none."""
    subscription = await get_latest_subscription(user_id)
    if subscription is None:
        return None
    return compute_subscription_access(subscription, now or datetime.now(UTC))


async def check_access(user_id: UUID, now: datetime | None = None) -> AccessGateResult:
    """
    Decide where an admin lands after login.

    Returns:
        AccessGateResult: admin-dashboard when granted, otherwise
        subscription-required with the plans to offer
    """
    try:
        access = await get_subscription_access(user_id, now)
    except StoreError as e:
        logger.error(
            f"Subscription check failed, denying access: {e.message}",
            extra={"user_id": str(user_id), "error_code": e.error_code},
        )
        return AccessGateResult(
            granted=False,
            screen=Screen.SUBSCRIPTION_REQUIRED,
            offered_plans=list(RENEWAL_PLANS),
            trial_available=False,
            reason="store_error",
        )

    if access is None:
        return AccessGateResult(
            granted=False,
            screen=Screen.SUBSCRIPTION_REQUIRED,
            offered_plans=list(ALL_PLANS),
            trial_available=True,
            reason="no_subscription",
        )

    if not access.has_access:
        logger.info(
            f"Subscription {access.plan_type.value} ({access.status.value}) grants no access",
            extra={"user_id": str(user_id)},
        )
        return AccessGateResult(
            granted=False,
            screen=Screen.SUBSCRIPTION_REQUIRED,
            access=access,
            offered_plans=list(RENEWAL_PLANS),
            trial_available=False,
            reason="expired",
        )

    return AccessGateResult(granted=True, screen=Screen.ADMIN_DASHBOARD, access=access)


async def create_subscription(
    user_id: UUID,
    plan_type: PlanType,
    business_name: str,
    business_phone: str,
    business_address: str,
    business_city: str,
    business_zip_code: str,
    billing_period: str = "monthly",
    now: datetime | None = None,
) -> Subscription:
    """
    Create an active subscription at the end of onboarding.

    Terms per plan:
        - free-trial: trial ends TRIAL_PERIOD_DAYS from now, price 0
        - pro: expires one month (monthly) or one year (yearly) from now
        - enterprise: no expiry, price 0, billed yearly

    The free trial is only offered to users with no subscription history.

    Raises:
        BookingValidationError: Unknown billing period, or trial requested
            by a user who already had a subscription
        StoreError: Database read or write failed
    """
    if billing_period not in BILLING_PERIODS:
        raise BookingValidationError(
            f"Unknown billing period: {billing_period}", error_code="INVALID_BILLING_PERIOD"
        )

    if plan_type == PlanType.FREE_TRIAL:
        previous = await get_latest_subscription(user_id)
        if previous is not None:
            logger.warning(
                f"Free trial refused, previous {previous.plan_type.value} subscription exists",
                extra={"user_id": str(user_id)},
            )
            raise BookingValidationError(
                "The free trial is only available for a first subscription.",
                error_code="TRIAL_UNAVAILABLE",
            )

    settings = get_settings()
    now = now or datetime.now(UTC)
    trial_ends_at = None
    expires_at = None
    price = Decimal("0")

    if plan_type == PlanType.FREE_TRIAL:
        trial_ends_at = now + timedelta(days=settings.TRIAL_PERIOD_DAYS)
    elif plan_type == PlanType.PRO:
        if billing_period == "monthly":
            expires_at = now + relativedelta(months=1)
            price = settings.PRO_MONTHLY_PRICE
        else:
            expires_at = now + relativedelta(years=1)
            price = settings.PRO_MONTHLY_PRICE * 12
    else:
        billing_period = "yearly"

    subscription = Subscription(
        user_id=user_id,
        plan_type=plan_type,
        status=SubscriptionStatus.ACTIVE,
        started_at=now,
        trial_ends_at=trial_ends_at,
        expires_at=expires_at,
        price=price,
        billing_period=billing_period,
        business_name=business_name,
        business_phone=business_phone,
        business_address=business_address,
        business_city=business_city,
        business_zip_code=business_zip_code,
    )

    try:
        async with get_async_session() as session:
            session.add(subscription)
            await session.commit()
            await session.refresh(subscription)
    except SQLAlchemyError as e:
        logger.error(
            f"Error creating subscription: {e}",
            extra={"user_id": str(user_id)},
            exc_info=True,
        )
        raise StoreError(str(e)) from e

    logger.info(
        f"Subscription created: plan={plan_type.value}, billing={billing_period}",
        extra={"user_id": str(user_id)},
    )
    return subscription


async def apply_pending_subscription(
    user_id: UUID, client_key: str, now: datetime | None = None
) -> Subscription | None:
    """
    Create the subscription chosen during onboarding, if one is waiting.

    Runs on the owner's login before the access gate. The pending details are
    claimed once; expired or rejected details are logged and dropped so the
    gate decides on whatever is already stored.

    Returns:
        The created Subscription, or None when nothing was created
    """
    log_extra = {"user_id": str(user_id), "client_key": client_key}
    now = now or datetime.now(UTC)

    try:
        intent = await claim_pending_subscription(client_key)
    except Exception as e:
        logger.error(f"Could not read pending subscription: {e}", extra=log_extra, exc_info=True)
        return None

    if intent is None:
        return None

    if intent.is_expired(now):
        logger.info("Discarding expired pending subscription", extra=log_extra)
        return None

    try:
        return await create_subscription(
            user_id=user_id,
            plan_type=intent.plan_type,
            business_name=intent.business_name,
            business_phone=intent.business_phone,
            business_address=intent.business_address,
            business_city=intent.business_city,
            business_zip_code=intent.business_zip_code,
            billing_period=intent.billing_period,
            now=now,
        )
    except BookingError as e:
        logger.error(
            f"Error applying pending subscription: {e.error_code}: {e.message}",
            extra={**log_extra, "error_code": e.error_code},
        )
        return None
