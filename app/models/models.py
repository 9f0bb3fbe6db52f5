from __future__ import annotations

import datetime as dt
import enum
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base_class import Base, SoftDeleteMixin


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime | None) -> dt.datetime | None:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=dt.timezone.utc)


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    # Persist the human-readable value ("Fixed Amount") rather than the member name
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


class PlanName(str, enum.Enum):
    """Subscription tiers."""
    FREE = "Free"
    PRO = "Pro"
    FAMILY = "Family"

    @property
    def is_paid(self) -> bool:
        return self != PlanName.FREE


class BillingCycle(str, enum.Enum):
    MONTHLY = "Monthly"
    YEARLY = "Yearly"

    @property
    def duration(self) -> dt.timedelta:
        """Length of one paid window for this cycle."""
        return dt.timedelta(days=30 if self == BillingCycle.MONTHLY else 365)


class BillingType(str, enum.Enum):
    MONTHLY = "Monthly"
    YEARLY = "Yearly"
    UNLIMITED = "Unlimited"

    @classmethod
    def for_cycle(cls, cycle: BillingCycle) -> BillingType:
        return cls(cycle.value)


class PaymentStatus(str, enum.Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    PENDING = "Pending"


class Role(str, enum.Enum):
    ADMIN = "Admin"
    USER = "User"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "Percentage"
    FIXED_AMOUNT = "Fixed Amount"


class NotificationStatus(str, enum.Enum):
    PENDING = "Pending"
    SENT = "Sent"


class Plan(SoftDeleteMixin, Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[PlanName] = mapped_column(_enum_column(PlanName), index=True)
    # NULL means unlimited for every max_* column
    max_policies: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_products: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_brands: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_policy_types: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_notifications: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_family_members: Mapped[int | None] = mapped_column(Integer, nullable=True)
    monthly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    yearly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    features: Mapped[list] = mapped_column(JSON, default=list)
    allow_family_members: Mapped[bool] = mapped_column(default=False)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow, nullable=True)

    def price_for(self, cycle: BillingCycle) -> Decimal:
        return self.monthly_price if cycle == BillingCycle.MONTHLY else self.yearly_price


class Coupon(SoftDeleteMixin, Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    # Case-sensitive; uniqueness among live coupons is checked on create
    code: Mapped[str] = mapped_column(String(64), index=True)
    discount_type: Mapped[DiscountType] = mapped_column(_enum_column(DiscountType))
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    max_discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    min_purchase: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    expiry_date: Mapped[dt.date] = mapped_column(Date)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    allowed_user_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )


class User(SoftDeleteMixin, Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    role: Mapped[Role] = mapped_column(_enum_column(Role), default=Role.USER, index=True)
    # Family/child accounts point at the admin that owns them
    owner_id: Mapped[int | None] = mapped_column(ForeignKey("user.id"), nullable=True, index=True)
    plan: Mapped[PlanName] = mapped_column(
        _enum_column(PlanName),
        default=PlanName.FREE,
        server_default=PlanName.FREE.value,
        index=True,
    )
    billing_type: Mapped[BillingType] = mapped_column(
        _enum_column(BillingType),
        default=BillingType.UNLIMITED,
        server_default=BillingType.UNLIMITED.value,
    )
    subscription_start_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    subscription_expiry_date: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum_column(PaymentStatus),
        default=PaymentStatus.PENDING,
        server_default=PaymentStatus.PENDING.value,
    )
    points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    referral_code: Mapped[str | None] = mapped_column(String(16), unique=True, nullable=True, index=True)
    referred_by_id: Mapped[int | None] = mapped_column(ForeignKey("user.id"), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    notifications: Mapped[list[Notification]] = relationship(
        "Notification",
        back_populates="user",
    )


class Brand(SoftDeleteMixin, Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class PolicyType(SoftDeleteMixin, Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Product(SoftDeleteMixin, Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), index=True)
    brand_id: Mapped[int | None] = mapped_column(ForeignKey("brand.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(200))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Policy(SoftDeleteMixin, Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), index=True)
    product_id: Mapped[int | None] = mapped_column(ForeignKey("product.id"), nullable=True)
    policy_type_id: Mapped[int | None] = mapped_column(ForeignKey("policytype.id"), nullable=True)
    policy_number: Mapped[str | None] = mapped_column(String(80), nullable=True)
    expiry_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Notification(SoftDeleteMixin, Base):
    """User-authored reminder delivered by email on ``schedule_date``."""

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), index=True)
    product_id: Mapped[int | None] = mapped_column(ForeignKey("product.id"), nullable=True)
    policy_id: Mapped[int | None] = mapped_column(ForeignKey("policy.id"), nullable=True)
    message: Mapped[str] = mapped_column(Text)
    schedule_date: Mapped[dt.date] = mapped_column(Date, index=True)
    status: Mapped[NotificationStatus] = mapped_column(
        _enum_column(NotificationStatus),
        default=NotificationStatus.PENDING,
        server_default=NotificationStatus.PENDING.value,
        index=True,
    )
    sent_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="notifications")


class PaymentOrder(Base):
    """Provider order opened at checkout, with the quote it was priced from.

    Plan selection reads plan, cycle and points from here, never from the
    client, and claims the row once by setting ``consumed_at``.
    """

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), index=True)
    plan: Mapped[PlanName] = mapped_column(_enum_column(PlanName))
    billing_cycle: Mapped[BillingCycle] = mapped_column(_enum_column(BillingCycle))
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    points_applied: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    coupon_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    consumed_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
