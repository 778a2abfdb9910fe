"""
Session context for an authenticated (or anonymous) user.

A SessionContext is created when the app starts (anonymous), replaced on
each authentication event, and cleared on logout. It is passed explicitly to
the flow controller and the deferred booking reconciler.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from database.models import UserRole


@dataclass(frozen=True)
class Actor:
    """The user attempting an operation, identified by id and role."""

    user_id: UUID
    role: UserRole

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT


@dataclass
class SessionContext:
    """
    Who is logged in, and which authentication event this session belongs to.

    Attributes:
        user_id: Authenticated user id, None while anonymous
        role: Role read from the user's profile
        email: Login email (informational)
        auth_event_id: Unique per authentication event; a duplicate callback
            for the same login reuses it
        authenticated_at: When the session became authenticated
        reconciled_event_id: auth_event_id for which deferred booking
            reconciliation has already run
    """

    user_id: UUID | None = None
    role: UserRole | None = None
    email: str | None = None
    auth_event_id: UUID | None = None
    authenticated_at: datetime | None = None
    reconciled_event_id: UUID | None = field(default=None, repr=False)

    @classmethod
    def anonymous(cls) -> "SessionContext":
        return cls()

    @classmethod
    def authenticated(
        cls,
        user_id: UUID,
        role: UserRole,
        email: str | None = None,
        auth_event_id: UUID | None = None,
    ) -> "SessionContext":
        return cls(
            user_id=user_id,
            role=role,
            email=email,
            auth_event_id=auth_event_id or uuid4(),
            authenticated_at=datetime.now(UTC),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None and self.role is not None

    @property
    def actor(self) -> Actor:
        if not self.is_authenticated:
            raise ValueError("Anonymous session has no actor")
        return Actor(user_id=self.user_id, role=self.role)

    def needs_reconciliation(self) -> bool:
        """True until reconciliation has run for the current auth event."""
        return self.is_authenticated and self.reconciled_event_id != self.auth_event_id

    def mark_reconciled(self) -> None:
        self.reconciled_event_id = self.auth_event_id

    def clear(self) -> None:
        """Reset to anonymous (logout)."""
        self.user_id = None
        self.role = None
        self.email = None
        self.auth_event_id = None
        self.authenticated_at = None
        self.reconciled_event_id = None
