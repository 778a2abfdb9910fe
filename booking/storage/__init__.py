"""Client-side state kept between anonymous browsing and login."""

from booking.storage.intent_store import (
    PendingBookingIntent,
    claim_pending_intent,
    get_pending_intent,
    remove_pending_intent,
    save_pending_intent,
)
from booking.storage.onboarding_store import (
    PendingSubscriptionIntent,
    claim_pending_subscription,
    save_pending_subscription,
)

__all__ = [
    "PendingBookingIntent",
    "PendingSubscriptionIntent",
    "claim_pending_intent",
    "claim_pending_subscription",
    "get_pending_intent",
    "remove_pending_intent",
    "save_pending_intent",
    "save_pending_subscription",
]
