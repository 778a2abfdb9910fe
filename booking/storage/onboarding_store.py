"""
Pending subscription storage.

Onboarding collects the chosen plan and the business details before the
owner has an account. They are held under the client key and turned into a
subscription on the owner's next login, before the access gate runs.

Redis Key Pattern:
    pending_subscription:{client_key}   TTL: PENDING_INTENT_TTL_SECONDS
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from database.models import PlanType
from shared.config import get_settings
from shared.redis_client import get_redis_client

logger = logging.getLogger(__name__)

SUBSCRIPTION_KEY_PREFIX = "pending_subscription"


class PendingSubscriptionIntent(BaseModel):
    """Plan and business details captured by onboarding."""

    plan_type: PlanType
    billing_period: Literal["monthly", "yearly"] = "monthly"
    business_name: str = Field(min_length=1)
    business_phone: str = Field(min_length=1)
    business_address: str = ""
    business_city: str = ""
    business_zip_code: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def is_expired(self, now: datetime) -> bool:
        ttl = timedelta(seconds=get_settings().PENDING_INTENT_TTL_SECONDS)
        return now - self.created_at > ttl


def subscription_key(client_key: str) -> str:
    return f"{SUBSCRIPTION_KEY_PREFIX}:{client_key}"


async def save_pending_subscription(client_key: str, intent: PendingSubscriptionIntent) -> None:
    """Store (or replace) the onboarding details with the configured TTL."""
    await get_redis_client().set(
        subscription_key(client_key),
        intent.model_dump_json(),
        ex=get_settings().PENDING_INTENT_TTL_SECONDS,
    )
    logger.info(
        f"Pending subscription saved: plan={intent.plan_type.value}, billing={intent.billing_period}",
        extra={"client_key": client_key},
    )


async def claim_pending_subscription(client_key: str) -> PendingSubscriptionIntent | None:
    """Atomically read and remove the onboarding details for a client key."""
    raw = await get_redis_client().getdel(subscription_key(client_key))
    if raw is None:
        return None
    try:
        return PendingSubscriptionIntent.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(
            f"Discarding unreadable pending subscription: {e}",
            extra={"client_key": client_key},
        )
        return None
