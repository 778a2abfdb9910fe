"""
DashboardFlow - Screen sequencing for login, OTP, onboarding and dashboards.

Screens: landing (initial), login, otp-verification, onboarding,
subscription-required, client-app, admin-dashboard.

Navigation events move between screens through the TRANSITIONS table.
Authentication events (login succeeded, OTP verified, email confirmed) route
by role instead:
- admin -> pending onboarding subscription applied -> subscription access gate
  -> admin-dashboard or subscription-required
- every other role -> client-app, after deferred booking reconciliation

Key responsibilities:
- Validate navigation events against the current screen
- Hold sign-up mode, the selected onboarding plan and OTP credentials
- Store the onboarding details under the client key until the owner logs in
- Discard OTP credentials on verification, on back and on logout
- Clear the session on logout
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import ClassVar
from uuid import UUID

from booking.fsm.models import FlowEvent, FlowResult, PendingOtpCredentials, Screen
from booking.services.reconciliation_service import DeferredBookingReconciler
from booking.services.subscription_service import (
    AccessGateResult,
    apply_pending_subscription,
    check_access,
)
from booking.session import SessionContext
from booking.storage.onboarding_store import PendingSubscriptionIntent, save_pending_subscription
from database.models import PlanType, Subscription, UserRole

logger = logging.getLogger(__name__)

AccessChecker = Callable[[UUID], Awaitable[AccessGateResult]]
SubscriptionApplier = Callable[[UUID, str], Awaitable[Subscription | None]]

# Screens that need an authenticated session
PROTECTED_SCREENS: frozenset[Screen] = frozenset({Screen.ADMIN_DASHBOARD, Screen.CLIENT_APP})


class DashboardFlow:
    """
    Screen state for one app instance.

    Example:
        >>> flow = DashboardFlow(client_key="device-123")
        >>> flow.navigate(FlowEvent.GET_STARTED).screen
        <Screen.LOGIN: 'login'>
        >>> result = await flow.login_succeeded(SessionContext.authenticated(user_id, UserRole.CLIENT))
        >>> result.screen
        <Screen.CLIENT_APP: 'client-app'>
    """

    # current_screen -> {event: next_screen}
    TRANSITIONS: ClassVar[dict[Screen, dict[FlowEvent, Screen]]] = {
        Screen.LANDING: {
            FlowEvent.GET_STARTED: Screen.LOGIN,
            FlowEvent.OPEN_LOGIN: Screen.LOGIN,
            FlowEvent.START_ONBOARDING: Screen.ONBOARDING,
        },
        Screen.LOGIN: {
            FlowEvent.BACK_TO_LANDING: Screen.LANDING,
            FlowEvent.NAVIGATE_TO_OTP: Screen.OTP_VERIFICATION,
        },
        Screen.OTP_VERIFICATION: {
            FlowEvent.BACK_FROM_OTP: Screen.LOGIN,
        },
        Screen.ONBOARDING: {
            FlowEvent.ONBOARDING_COMPLETE: Screen.LOGIN,
            FlowEvent.BACK_FROM_ONBOARDING: Screen.LANDING,
        },
        Screen.SUBSCRIPTION_REQUIRED: {
            FlowEvent.BACK_TO_LANDING: Screen.LANDING,
            FlowEvent.START_ONBOARDING: Screen.ONBOARDING,
        },
        Screen.CLIENT_APP: {
            FlowEvent.BACK_TO_LANDING: Screen.LANDING,
            FlowEvent.REQUIRE_LOGIN: Screen.LOGIN,
        },
        Screen.ADMIN_DASHBOARD: {},
    }

    # Events that land on the login screen in sign-up mode
    SIGN_UP_EVENTS: ClassVar[frozenset[FlowEvent]] = frozenset(
        {FlowEvent.GET_STARTED, FlowEvent.ONBOARDING_COMPLETE, FlowEvent.REQUIRE_LOGIN}
    )

    # auth event -> screens it is accepted from (None: any screen)
    AUTH_EVENT_SOURCES: ClassVar[dict[FlowEvent, frozenset[Screen] | None]] = {
        FlowEvent.LOGIN_SUCCEEDED: frozenset({Screen.LOGIN}),
        FlowEvent.OTP_VERIFIED: frozenset({Screen.OTP_VERIFICATION}),
        FlowEvent.EMAIL_CONFIRMED: None,
    }

    # role -> screen after authentication (admin still passes the access gate)
    ROLE_ROUTES: ClassVar[dict[UserRole, Screen]] = {
        UserRole.ADMIN: Screen.ADMIN_DASHBOARD,
        UserRole.MANAGER: Screen.CLIENT_APP,
        UserRole.STAFF: Screen.CLIENT_APP,
        UserRole.CLIENT: Screen.CLIENT_APP,
    }

    def __init__(
        self,
        client_key: str | None = None,
        reconciler: DeferredBookingReconciler | None = None,
        access_checker: AccessChecker | None = None,
        subscription_applier: SubscriptionApplier | None = None,
    ) -> None:
        self._screen = Screen.LANDING
        self._client_key = client_key
        self._reconciler = reconciler or DeferredBookingReconciler()
        self._access_checker = access_checker or check_access
        self._subscription_applier = subscription_applier or apply_pending_subscription
        self._sign_up_mode = False
        self._selected_plan = PlanType.FREE_TRIAL
        self._otp_credentials: PendingOtpCredentials | None = None
        self._last_gate: AccessGateResult | None = None

    @property
    def screen(self) -> Screen:
        return self._screen

    @property
    def sign_up_mode(self) -> bool:
        return self._sign_up_mode

    @property
    def selected_plan(self) -> PlanType:
        return self._selected_plan

    @property
    def otp_credentials(self) -> PendingOtpCredentials | None:
        return self._otp_credentials

    @property
    def last_gate(self) -> AccessGateResult | None:
        """Most recent access gate decision (for the subscription screen)."""
        return self._last_gate

    def can_navigate(self, event: FlowEvent) -> bool:
        return event in self.TRANSITIONS.get(self._screen, {})

    def _reject(self, event: FlowEvent, errors: list[str]) -> FlowResult:
        logger.warning(
            "Flow transition rejected: %s -> ? | event=%s | errors=%s",
            self._screen.value,
            event.value,
            errors,
        )
        return FlowResult(
            success=False,
            screen=self._screen,
            previous_screen=self._screen,
            event=event,
            validation_errors=errors,
        )

    def _move(self, event: FlowEvent, to_screen: Screen, booking_created_id: UUID | None = None) -> FlowResult:
        from_screen = self._screen
        self._screen = to_screen
        logger.info(
            "Flow transition: %s -> %s | event=%s",
            from_screen.value,
            to_screen.value,
            event.value,
        )
        return FlowResult(
            success=True,
            screen=to_screen,
            previous_screen=from_screen,
            event=event,
            booking_created_id=booking_created_id,
        )

    def navigate(self, event: FlowEvent) -> FlowResult:
        """
        Apply a navigation event from the TRANSITIONS table.

        Events with a payload (OTP credentials, onboarding plan and details) and
        authentication events have their own methods.
        """
        if event == FlowEvent.NAVIGATE_TO_OTP:
            return self._reject(event, ["Use navigate_to_otp() with the login credentials"])
        if event == FlowEvent.START_ONBOARDING:
            return self._reject(event, ["Use start_onboarding() with the selected plan"])
        if event == FlowEvent.ONBOARDING_COMPLETE:
            return self._reject(event, ["Use complete_onboarding() with the business details"])
        if event in self.AUTH_EVENT_SOURCES or event == FlowEvent.LOGOUT:
            return self._reject(event, [f"{event.value} needs a session"])

        if not self.can_navigate(event):
            return self._reject(
                event, [f"{event.value} is not available from {self._screen.value}"]
            )

        if event == FlowEvent.BACK_FROM_OTP:
            self._otp_credentials = None
        if event in self.SIGN_UP_EVENTS:
            self._sign_up_mode = True
        elif event in (FlowEvent.OPEN_LOGIN, FlowEvent.BACK_TO_LANDING):
            self._sign_up_mode = False

        return self._move(event, self.TRANSITIONS[self._screen][event])

    def navigate_to_otp(self, email: str, password: str) -> FlowResult:
        """Hold the login credentials until OTP verification completes."""
        event = FlowEvent.NAVIGATE_TO_OTP
        if not self.can_navigate(event):
            return self._reject(event, [f"{event.value} is not available from {self._screen.value}"])

        self._otp_credentials = PendingOtpCredentials(
            email=email, password=password, captured_at=datetime.now(UTC)
        )
        return self._move(event, Screen.OTP_VERIFICATION)

    def start_onboarding(self, plan_type: PlanType = PlanType.FREE_TRIAL) -> FlowResult:
        """Open onboarding for a plan; the free trial is refused once the gate barred it."""
        event = FlowEvent.START_ONBOARDING
        if not self.can_navigate(event):
            return self._reject(event, [f"{event.value} is not available from {self._screen.value}"])

        if (
            plan_type == PlanType.FREE_TRIAL
            and self._screen == Screen.SUBSCRIPTION_REQUIRED
            and self._last_gate is not None
            and not self._last_gate.trial_available
        ):
            return self._reject(event, ["The free trial is no longer available for this account"])

        self._selected_plan = plan_type
        return self._move(event, Screen.ONBOARDING)

    async def complete_onboarding(
        self,
        business_name: str,
        business_phone: str,
        business_address: str = "",
        business_city: str = "",
        business_zip_code: str = "",
        billing_period: str = "monthly",
    ) -> FlowResult:
        """
        Hold the selected plan and business details until the owner logs in,
        then open sign-up.

        Raises:
            pydantic.ValidationError: Missing business name or phone, unknown billing period
        """
        event = FlowEvent.ONBOARDING_COMPLETE
        if not self.can_navigate(event):
            return self._reject(event, [f"{event.value} is not available from {self._screen.value}"])
        if self._client_key is None:
            return self._reject(event, ["No client key to hold the onboarding details"])

        intent = PendingSubscriptionIntent(
            plan_type=self._selected_plan,
            billing_period=billing_period,
            business_name=business_name,
            business_phone=business_phone,
            business_address=business_address,
            business_city=business_city,
            business_zip_code=business_zip_code,
        )
        await save_pending_subscription(self._client_key, intent)

        self._sign_up_mode = True
        return self._move(event, Screen.LOGIN)

    async def login_succeeded(self, session: SessionContext) -> FlowResult:
        return await self._authenticated(FlowEvent.LOGIN_SUCCEEDED, session)

    async def otp_verified(self, session: SessionContext) -> FlowResult:
        return await self._authenticated(FlowEvent.OTP_VERIFIED, session)

    async def email_confirmed(self, session: SessionContext) -> FlowResult:
        return await self._authenticated(FlowEvent.EMAIL_CONFIRMED, session)

    async def _authenticated(self, event: FlowEvent, session: SessionContext) -> FlowResult:
        sources = self.AUTH_EVENT_SOURCES[event]
        if sources is not None and self._screen not in sources:
            return self._reject(event, [f"{event.value} is not available from {self._screen.value}"])
        if not session.is_authenticated:
            return self._reject(event, ["Session is not authenticated"])

        self._otp_credentials = None
        self._sign_up_mode = False
        to_screen, booking_id = await self._route_by_role(session)
        return self._move(event, to_screen, booking_created_id=booking_id)

    async def _route_by_role(self, session: SessionContext) -> tuple[Screen, UUID | None]:
        target = self.ROLE_ROUTES[session.role]

        if target == Screen.ADMIN_DASHBOARD:
            if self._client_key is not None:
                await self._subscription_applier(session.user_id, self._client_key)
            self._last_gate = await self._access_checker(session.user_id)
            return self._last_gate.screen, None

        booking_id = None
        if self._client_key is not None:
            result = await self._reconciler.reconcile(session, self._client_key)
            if result.created:
                booking_id = result.appointment.id
        return target, booking_id

    async def resume(self, session: SessionContext) -> FlowResult:
        """
        Re-route after the session changed outside an explicit auth event
        (page reload, token refresh, sign-out in another tab).

        Anonymous sessions are sent back to landing from protected screens.
        Authenticated sessions are re-routed by role; a client already on
        onboarding or subscription-required stays there.
        """
        event = FlowEvent.EMAIL_CONFIRMED
        if not session.is_authenticated:
            if self._screen in PROTECTED_SCREENS:
                return self._move(FlowEvent.LOGOUT, Screen.LANDING)
            return FlowResult(
                success=True, screen=self._screen, previous_screen=self._screen, event=FlowEvent.LOGOUT
            )

        if session.role != UserRole.ADMIN and self._screen in (
            Screen.ONBOARDING,
            Screen.SUBSCRIPTION_REQUIRED,
        ):
            return FlowResult(success=True, screen=self._screen, previous_screen=self._screen, event=event)

        to_screen, booking_id = await self._route_by_role(session)
        return self._move(event, to_screen, booking_created_id=booking_id)

    def logout(self, session: SessionContext) -> FlowResult:
        """Clear the session and all held state, and return to landing."""
        session.clear()
        self._otp_credentials = None
        self._sign_up_mode = False
        self._selected_plan = PlanType.FREE_TRIAL
        self._last_gate = None
        return self._move(FlowEvent.LOGOUT, Screen.LANDING)
