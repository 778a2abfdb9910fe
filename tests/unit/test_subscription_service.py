"""
Unit tests for subscription_service.py - Subscription access gate.

Tests coverage:
- compute_subscription_access(): per-plan expiry rules, days remaining
- check_access(): no record, expired, granted, store failure (fail closed)
- create_subscription(): plan terms for free-trial, pro and enterprise
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from booking.errors import BookingValidationError, StoreError
from booking.fsm.models import Screen
from booking.services.subscription_service import (
    check_access,
    compute_subscription_access,
    apply_pending_subscription,
    create_subscription,
    get_subscription_access,
)
from booking.storage.onboarding_store import PendingSubscriptionIntent
from database.models import PlanType, SubscriptionStatus

MODULE = "booking.services.subscription_service"
NOW = datetime(2025, 3, 14, 2, 0, tzinfo=UTC)


def _subscription(plan_type, status=SubscriptionStatus.ACTIVE, expires_at=None, trial_ends_at=None):
    return SimpleNamespace(
        plan_type=plan_type,
        status=status,
        expires_at=expires_at,
        trial_ends_at=trial_ends_at,
    )


class TestComputeSubscriptionAccess:
    def test_trial_in_progress(self):
        access = compute_subscription_access(
            _subscription(PlanType.FREE_TRIAL, trial_ends_at=NOW + timedelta(days=3, hours=1)), NOW
        )

        assert access.has_access is True
        assert access.days_remaining == 4

    def test_trial_ended(self):
        access = compute_subscription_access(
            _subscription(PlanType.FREE_TRIAL, trial_ends_at=NOW - timedelta(seconds=1)), NOW
        )

        assert access.has_access is False
        assert access.days_remaining == 0

    def test_trial_without_end_date_grants_nothing(self):
        access = compute_subscription_access(_subscription(PlanType.FREE_TRIAL), NOW)
        assert access.has_access is False

    def test_pro_until_expiry(self):
        assert compute_subscription_access(
            _subscription(PlanType.PRO, expires_at=NOW + timedelta(days=10)), NOW
        ).has_access is True
        assert compute_subscription_access(
            _subscription(PlanType.PRO, expires_at=NOW - timedelta(days=1)), NOW
        ).has_access is False

    def test_pro_without_expiry(self):
        access = compute_subscription_access(_subscription(PlanType.PRO), NOW)
        assert access.has_access is True
        assert access.days_remaining is None

    def test_enterprise_never_expires(self):
        access = compute_subscription_access(
            _subscription(PlanType.ENTERPRISE, expires_at=NOW - timedelta(days=400)), NOW
        )
        assert access.has_access is True
        assert access.days_remaining is None

    @pytest.mark.parametrize(
        "status",
        [SubscriptionStatus.EXPIRED, SubscriptionStatus.CANCELLED, SubscriptionStatus.SUSPENDED],
    )
    def test_inactive_status_denies(self, status):
        access = compute_subscription_access(_subscription(PlanType.ENTERPRISE, status=status), NOW)
        assert access.has_access is False


class TestCheckAccess:
    @pytest.mark.asyncio
    async def test_no_subscription_offers_all_plans(self):
        with patch(f"{MODULE}.get_latest_subscription", new=AsyncMock(return_value=None)):
            gate = await check_access(uuid4(), now=NOW)

        assert gate.granted is False
        assert gate.screen == Screen.SUBSCRIPTION_REQUIRED
        assert gate.offered_plans == [PlanType.FREE_TRIAL, PlanType.PRO, PlanType.ENTERPRISE]
        assert gate.trial_available is True

    @pytest.mark.asyncio
    async def test_expired_subscription_bars_trial(self):
        expired = _subscription(PlanType.FREE_TRIAL, trial_ends_at=NOW - timedelta(days=1))

        with patch(f"{MODULE}.get_latest_subscription", new=AsyncMock(return_value=expired)):
            gate = await check_access(uuid4(), now=NOW)

        assert gate.granted is False
        assert gate.screen == Screen.SUBSCRIPTION_REQUIRED
        assert gate.offered_plans == [PlanType.PRO, PlanType.ENTERPRISE]
        assert gate.trial_available is False

    @pytest.mark.asyncio
    async def test_active_subscription_grants_dashboard(self):
        active = _subscription(PlanType.PRO, expires_at=NOW + timedelta(days=20))

        with patch(f"{MODULE}.get_latest_subscription", new=AsyncMock(return_value=active)):
            gate = await check_access(uuid4(), now=NOW)

        assert gate.granted is True
        assert gate.screen == Screen.ADMIN_DASHBOARD
        assert gate.access.days_remaining == 20

    @pytest.mark.asyncio
    async def test_store_failure_fails_closed(self):
        with patch(f"{MODULE}.get_latest_subscription", new=AsyncMock(side_effect=StoreError("timeout"))):
            gate = await check_access(uuid4(), now=NOW)

        assert gate.granted is False
        assert gate.screen == Screen.SUBSCRIPTION_REQUIRED
        assert gate.trial_available is False
        assert PlanType.FREE_TRIAL not in gate.offered_plans

    @pytest.mark.asyncio
    async def test_database_error_becomes_store_error(self):
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("timeout"))

        with patch(f"{MODULE}.get_async_session") as mock_session:
            mock_session.return_value.__aenter__.return_value = session

            with pytest.raises(StoreError):
                await get_subscription_access(uuid4(), now=NOW)


class TestCreateSubscription:
    @pytest.fixture
    def session(self):
        session = AsyncMock()
        session.add = MagicMock()
        return session

    async def _create(self, session, plan_type, billing_period="monthly", previous=None, now=NOW):
        with patch(f"{MODULE}.get_async_session") as mock_session, \
             patch(f"{MODULE}.get_latest_subscription", new=AsyncMock(return_value=previous)):
            mock_session.return_value.__aenter__.return_value = session
            return await create_subscription(
                user_id=uuid4(),
                plan_type=plan_type,
                business_name="Glam Studio",
                business_phone="09175550101",
                business_address="12 Mango Ave",
                business_city="Cebu City",
                business_zip_code="6000",
                billing_period=billing_period,
                now=now,
            )

    @pytest.mark.asyncio
    async def test_free_trial_runs_fourteen_days(self, session):
        subscription = await self._create(session, PlanType.FREE_TRIAL)

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.trial_ends_at == NOW + timedelta(days=14)
        assert subscription.expires_at is None
        assert subscription.price == Decimal("0")
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pro_monthly(self, session):
        subscription = await self._create(session, PlanType.PRO)

        assert subscription.expires_at == datetime(2025, 4, 14, 2, 0, tzinfo=UTC)
        assert subscription.price == Decimal("1499.00")
        assert subscription.billing_period == "monthly"

    @pytest.mark.asyncio
    async def test_pro_yearly(self, session):
        subscription = await self._create(session, PlanType.PRO, billing_period="yearly")

        assert subscription.expires_at == datetime(2026, 3, 14, 2, 0, tzinfo=UTC)
        assert subscription.price == Decimal("17988.00")

    @pytest.mark.asyncio
    async def test_enterprise_has_no_expiry_and_bills_yearly(self, session):
        subscription = await self._create(session, PlanType.ENTERPRISE)

        assert subscription.expires_at is None
        assert subscription.trial_ends_at is None
        assert subscription.billing_period == "yearly"

    @pytest.mark.asyncio
    async def test_unknown_billing_period(self, session):
        with pytest.raises(BookingValidationError):
            await self._create(session, PlanType.PRO, billing_period="weekly")

    @pytest.mark.asyncio
    async def test_store_failure(self, session):
        session.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

        with pytest.raises(StoreError):
            await self._create(session, PlanType.PRO)

    @pytest.mark.asyncio
    async def test_pro_monthly_clamps_to_month_end(self, session):
        subscription = await self._create(
            session, PlanType.PRO, now=datetime(2025, 1, 31, 2, 0, tzinfo=UTC)
        )

        assert subscription.expires_at == datetime(2025, 2, 28, 2, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_pro_monthly_crosses_year(self, session):
        subscription = await self._create(
            session, PlanType.PRO, now=datetime(2025, 12, 15, 2, 0, tzinfo=UTC)
        )

        assert subscription.expires_at == datetime(2026, 1, 15, 2, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_expired_trial_cannot_start_another(self, session):
        expired = _subscription(PlanType.FREE_TRIAL, trial_ends_at=NOW - timedelta(days=1))

        with pytest.raises(BookingValidationError) as exc_info:
            await self._create(session, PlanType.FREE_TRIAL, previous=expired)

        assert exc_info.value.error_code == "TRIAL_UNAVAILABLE"
        session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_lapsed_pro_cannot_fall_back_to_trial(self, session):
        lapsed = _subscription(PlanType.PRO, expires_at=NOW - timedelta(days=3))

        with pytest.raises(BookingValidationError):
            await self._create(session, PlanType.FREE_TRIAL, previous=lapsed)

    @pytest.mark.asyncio
    async def test_renewal_to_pro_after_trial_is_allowed(self, session):
        expired = _subscription(PlanType.FREE_TRIAL, trial_ends_at=NOW - timedelta(days=1))

        subscription = await self._create(session, PlanType.PRO, previous=expired)

        assert subscription.plan_type == PlanType.PRO
        session.commit.assert_awaited_once()


class TestApplyPendingSubscription:
    @pytest.fixture
    def pending(self):
        return PendingSubscriptionIntent(
            plan_type=PlanType.PRO,
            billing_period="yearly",
            business_name="Glam Studio",
            business_phone="09175550101",
            business_city="Cebu City",
            created_at=NOW,
        )

    @pytest.mark.asyncio
    async def test_creates_onboarding_plan(self, pending):
        user_id = uuid4()
        created = MagicMock()

        with patch(f"{MODULE}.claim_pending_subscription", new=AsyncMock(return_value=pending)), \
             patch(f"{MODULE}.create_subscription", new=AsyncMock(return_value=created)) as mock_create:
            result = await apply_pending_subscription(user_id, "device-123", now=NOW + timedelta(minutes=10))

        assert result is created
        kwargs = mock_create.await_args.kwargs
        assert kwargs["user_id"] == user_id
        assert kwargs["plan_type"] == PlanType.PRO
        assert kwargs["billing_period"] == "yearly"
        assert kwargs["business_city"] == "Cebu City"

    @pytest.mark.asyncio
    async def test_nothing_waiting(self):
        with patch(f"{MODULE}.claim_pending_subscription", new=AsyncMock(return_value=None)), \
             patch(f"{MODULE}.create_subscription", new=AsyncMock()) as mock_create:
            assert await apply_pending_subscription(uuid4(), "device-123", now=NOW) is None

        mock_create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_details_are_dropped(self, pending):
        with patch(f"{MODULE}.claim_pending_subscription", new=AsyncMock(return_value=pending)), \
             patch(f"{MODULE}.create_subscription", new=AsyncMock()) as mock_create:
            result = await apply_pending_subscription(uuid4(), "device-123", now=NOW + timedelta(minutes=61))

        assert result is None
        mock_create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_trial_is_logged_not_raised(self, pending):
        trial = pending.model_copy(update={"plan_type": PlanType.FREE_TRIAL})
        error = BookingValidationError("trial used", error_code="TRIAL_UNAVAILABLE")

        with patch(f"{MODULE}.claim_pending_subscription", new=AsyncMock(return_value=trial)), \
             patch(f"{MODULE}.create_subscription", new=AsyncMock(side_effect=error)):
            assert await apply_pending_subscription(uuid4(), "device-123", now=NOW) is None

    @pytest.mark.asyncio
    async def test_store_unreachable(self):
        with patch(
            f"{MODULE}.claim_pending_subscription",
            new=AsyncMock(side_effect=ConnectionError("redis down")),
        ):
            assert await apply_pending_subscription(uuid4(), "device-123", now=NOW) is None
