"""Plan catalog schemas."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from app.models.models import BillingCycle, PlanName

from .utils import format_amount, limit_from_wire, limit_to_wire

_LIMIT_FIELDS = (
    "max_policies",
    "max_products",
    "max_brands",
    "max_policy_types",
    "max_notifications",
    "max_family_members",
)


class PlanLimitsIn(BaseModel):
    """Limits accept a non-negative integer or "Unlimited"; omitted limits take the tier default."""

    max_policies: int | str | None = None
    max_products: int | str | None = None
    max_brands: int | str | None = None
    max_policy_types: int | str | None = None
    max_notifications: int | str | None = None
    max_family_members: int | str | None = None

    @field_validator(*_LIMIT_FIELDS)
    @classmethod
    def _parse_limit(cls, value: Any) -> int | None:
        return limit_from_wire(value)


class PlanCreate(PlanLimitsIn):
    name: PlanName
    monthly_price: Decimal = Field(Decimal("0"), ge=0)
    yearly_price: Decimal = Field(Decimal("0"), ge=0)
    features: list[str] = Field(default_factory=list)
    is_active: bool = True


class PlanUpdate(PlanLimitsIn):
    monthly_price: Decimal | None = Field(None, ge=0)
    yearly_price: Decimal | None = Field(None, ge=0)
    features: list[str] | None = None


class StatusUpdate(BaseModel):
    is_active: bool


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: PlanName
    max_policies: int | None = None
    max_products: int | None = None
    max_brands: int | None = None
    max_policy_types: int | None = None
    max_notifications: int | None = None
    max_family_members: int | None = None
    monthly_price: Decimal
    yearly_price: Decimal
    features: list[str] = Field(default_factory=list)
    allow_family_members: bool
    is_active: bool
    created_at: dt.datetime | None = None

    @field_serializer(*_LIMIT_FIELDS)
    def _serialize_limit(self, value: int | None) -> int | str:
        return limit_to_wire(value)

    @field_serializer("monthly_price", "yearly_price")
    def _serialize_price(self, value: Decimal) -> str | None:
        return format_amount(value)


class SelectPlanIn(BaseModel):
    plan: PlanName
    billing_cycle: BillingCycle | None = None
    # Checkout proof, required for paid plans
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None


class SelectPlanOut(BaseModel):
    plan: PlanName
    previous_plan: PlanName
    billing_type: str
    payment_status: str
    subscription_start_date: dt.datetime | None = None
    subscription_expiry_date: dt.datetime | None = None
    points: int
    points_deducted: int
    access_token: str
    token_type: str = "bearer"
