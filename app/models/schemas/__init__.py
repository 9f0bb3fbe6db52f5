"""Pydantic schemas for API requests and responses.

Sub-modules:
- plan: Plan catalog and plan selection schemas
- coupon: Coupon store and quote schemas
- billing: Payment, entitlement and subscription status schemas
- utils: Common utility functions
"""
from .billing import (
    LimitOut,
    PaymentOrderOut,
    PaymentVerifyIn,
    PaymentVerifyOut,
    ReferralApplyIn,
    ReferralApplyOut,
    SubscriptionStatusOut,
    UsageSummaryOut,
)
from .coupon import (
    CouponCreate,
    CouponOut,
    CouponPage,
    CouponUpdate,
    QuoteOut,
    QuoteRequest,
)
from .plan import (
    PlanCreate,
    PlanOut,
    PlanUpdate,
    SelectPlanIn,
    SelectPlanOut,
    StatusUpdate,
)

__all__ = [
    "PlanCreate", "PlanUpdate", "PlanOut", "StatusUpdate", "SelectPlanIn", "SelectPlanOut",
    "CouponCreate", "CouponUpdate", "CouponOut", "CouponPage", "QuoteRequest", "QuoteOut",
    "PaymentOrderOut", "PaymentVerifyIn", "PaymentVerifyOut",
    "LimitOut", "UsageSummaryOut", "SubscriptionStatusOut", "ReferralApplyIn", "ReferralApplyOut",
]
