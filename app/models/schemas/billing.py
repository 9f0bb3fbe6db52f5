"""Payment, entitlement and subscription status schemas.

Provider internals (key secret, raw callback payloads) never appear here.
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer

from .coupon import QuoteOut
from .utils import format_amount


class PaymentOrderOut(BaseModel):
    order_id: str | None = None
    amount: Decimal
    amount_minor: int
    currency: str
    receipt: str | None = None
    key_id: str | None = None
    requires_payment: bool
    quote: QuoteOut
    # Set only when the upgrade completed without a provider order
    access_token: str | None = None

    @field_serializer("amount")
    def _serialize_amount(self, value: Decimal) -> str | None:
        return format_amount(value)


class PaymentVerifyIn(BaseModel):
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None


class PaymentVerifyOut(BaseModel):
    verified: bool
    order_id: str
    message: str = "Payment verified"


class LimitOut(BaseModel):
    resource: str
    allowed: bool
    plan: str
    limit: int | str
    used: int
    reason: str | None = None


class UsageSummaryOut(BaseModel):
    plan: str
    resources: list[LimitOut]


class SubscriptionStatusOut(BaseModel):
    plan: str
    effective_plan: str
    billing_type: str
    payment_status: str
    subscription_start_date: dt.datetime | None = None
    subscription_expiry_date: dt.datetime | None = None
    days_remaining: int | None = None
    points: int
    referral_code: str | None = None
    referral_count: int = 0


class ReferralApplyIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)


class ReferralApplyOut(BaseModel):
    applied: bool
