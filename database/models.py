"""
SQLAlchemy ORM models for the salon booking core.

This module defines the tables the scheduling core reads and writes:
- profiles: Authenticated users and their role
- shops: Salon venues
- services: Bookable services offered by a venue
- bookings: Appointments and their lifecycle status
- subscriptions: Admin subscription records backing the access gate

All models use:
- UUID primary keys (auto-generated)
- TIMESTAMP WITH TIME ZONE for datetime fields
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    TIMESTAMP,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ============================================================================
# Enums
# ============================================================================


class UserRole(str, PyEnum):
    """Closed set of roles an authenticated profile can carry."""

    CLIENT = "client"
    STAFF = "staff"
    MANAGER = "manager"
    ADMIN = "admin"


class AppointmentStatus(str, PyEnum):
    """Appointment lifecycle status."""

    PENDING = "pending"        # Created, awaiting staff confirmation
    CONFIRMED = "confirmed"    # Accepted by staff
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self):
        return self.value


ACTIVE_APPOINTMENT_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
TERMINAL_APPOINTMENT_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


class PlanType(str, PyEnum):
    """Subscription plan tiers."""

    FREE_TRIAL = "free-trial"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, PyEnum):
    """Subscription record status."""

    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


# ============================================================================
# Core Models
# ============================================================================


class Profile(Base):
    """
    Profile model - Authenticated users of the platform.

    The id matches the identity provider's user id. Role decides which
    screens the user reaches after login.
    """

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role", values_callable=_enum_values),
        nullable=False,
        default=UserRole.CLIENT,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, email='{self.email}', role='{self.role.value}')>"


class Venue(Base):
    """Venue model - A single salon location (a "shop")."""

    __tablename__ = "shops"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )

    services: Mapped[list["Service"]] = relationship("Service", back_populates="venue")

    def __repr__(self) -> str:
        return f"<Venue(id={self.id}, name='{self.name}')>"


class Service(Base):
    """
    Service model - A bookable service at one venue.

    Duration is informational for the scheduling core: slots are blocked by
    exact start time only.
    """

    __tablename__ = "services"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    venue_id: Mapped[UUID] = mapped_column(
        "shop_id",
        PGUUID(as_uuid=True),
        ForeignKey("shops.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    duration_minutes: Mapped[int] = mapped_column("duration", Integer, nullable=False)
    rating: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)

    venue: Mapped["Venue"] = relationship("Venue", back_populates="services")

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name='{self.name}', duration={self.duration_minutes}min)>"


class Appointment(Base):
    """
    Appointment model - A client's reservation of one service at one venue.

    Lifecycle: pending -> confirmed -> completed, with cancelled reachable
    from pending or confirmed. staff_id stays NULL until a staff member
    confirms the appointment.
    """

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )

    client_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
    )
    venue_id: Mapped[UUID] = mapped_column(
        "shop_id",
        PGUUID(as_uuid=True),
        ForeignKey("shops.id", ondelete="RESTRICT"),
        nullable=False,
    )
    staff_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )

    start_time: Mapped[datetime] = mapped_column(
        "start_at", TIMESTAMP(timezone=True), nullable=False
    )
    end_time: Mapped[datetime | None] = mapped_column(
        "end_at", TIMESTAMP(timezone=True), nullable=True
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus, name="booking_status", values_callable=_enum_values),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    service: Mapped["Service"] = relationship("Service")
    venue: Mapped["Venue"] = relationship("Venue")

    __table_args__ = (
        Index("idx_bookings_slot_lookup", "service_id", "shop_id", "start_at"),
        # One active booking per service/venue/start time
        Index(
            "uq_bookings_active_slot",
            "service_id",
            "shop_id",
            "start_at",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, start_time={self.start_time}, "
            f"status='{self.status.value}')>"
        )


class Subscription(Base):
    """
    Subscription model - Plan held by an admin user.

    Access is derived from this record on every check (see
    booking.services.subscription_service), never stored.
    """

    __tablename__ = "subscriptions"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plan_type: Mapped[PlanType] = mapped_column(
        SQLEnum(PlanType, name="plan_type", values_callable=_enum_values),
        nullable=False,
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        SQLEnum(SubscriptionStatus, name="subscription_status", values_callable=_enum_values),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )

    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    trial_ends_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    billing_period: Mapped[str] = mapped_column(String(20), nullable=False, default="monthly")

    business_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    business_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    business_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    business_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    business_zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, plan='{self.plan_type.value}', "
            f"status='{self.status.value}')>"
        )
