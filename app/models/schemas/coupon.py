"""Coupon store schemas."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from app.models.models import BillingCycle, DiscountType, PlanName

from .utils import format_amount


class CouponBase(BaseModel):
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    max_discount: Decimal | None = Field(None, ge=0)
    min_purchase: Decimal | None = Field(None, ge=0)
    expiry_date: dt.date
    usage_limit: int | None = Field(None, ge=0)
    allowed_user_ids: list[int] | None = None
    is_active: bool = True

    @model_validator(mode="after")
    def _check_percentage(self) -> "CouponBase":
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discounts cannot exceed 100")
        return self


class CouponCreate(CouponBase):
    code: str = Field(..., min_length=1, max_length=64)


class CouponUpdate(BaseModel):
    code: str | None = Field(None, min_length=1, max_length=64)
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(None, gt=0)
    max_discount: Decimal | None = Field(None, ge=0)
    min_purchase: Decimal | None = Field(None, ge=0)
    expiry_date: dt.date | None = None
    usage_limit: int | None = Field(None, ge=0)
    allowed_user_ids: list[int] | None = None


class CouponOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    max_discount: Decimal | None = None
    min_purchase: Decimal | None = None
    expiry_date: dt.date
    usage_limit: int | None = None
    used_count: int
    allowed_user_ids: list[int] | None = None
    is_active: bool

    @field_serializer("discount_value", "max_discount", "min_purchase")
    def _serialize_amount(self, value: Decimal | None) -> str | None:
        return format_amount(value)


class CouponPage(BaseModel):
    items: list[CouponOut]
    total: int
    page: int
    limit: int


class QuoteRequest(BaseModel):
    plan: PlanName
    billing_cycle: BillingCycle | None = None
    coupon_code: str | None = None
    points: int = Field(0, ge=0)


class QuoteOut(BaseModel):
    plan: PlanName
    billing_cycle: BillingCycle | None = None
    base_price: Decimal
    discount_amount: Decimal
    points_applied: int
    final_amount: Decimal
    requires_payment: bool
    coupon_code: str | None = None

    @field_serializer("base_price", "discount_amount", "final_amount")
    def _serialize_amount(self, value: Decimal) -> str | None:
        return format_amount(value)
