"""
Booking services.

Services:
- availability_service: Slot grid and availability snapshot per day
- catalog_service: Service / venue name resolution
- lifecycle_service: Status changes, cancellation and hard delete
- reconciliation_service: Replays a pre-login booking intent after login
- subscription_service: Subscription access gate and onboarding plans
"""
