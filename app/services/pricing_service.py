"""
Upgrade pricing: base price, coupon, loyalty points, provider minimum.

Steps run in a fixed order:
1. Base price from the plan's monthly or yearly price (Free is always zero)
2. Coupon validation, then discount
3. Loyalty points, 1 point = 1 currency unit
4. Final amount; anything positive but below MIN_PAYABLE_AMOUNT is raised to it,
   and zero or less means no payment order at all

Redeeming a coupon increments its ``used_count`` with a conditional UPDATE, so
two requests racing for the last use cannot both succeed.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app import metrics
from app.core.audit import log_denied
from app.core.config import settings
from app.core.exceptions import (
    BelowMinimumPurchaseError,
    CouponExpiredError,
    CouponRejectedError,
    InvalidCouponError,
    NotEligibleError,
    PlanNotFoundError,
    QuoteValidationError,
    SubscriberNotFoundError,
    UsageLimitReachedError,
)
from app.models import models
from app.models.models import BillingCycle, DiscountType, PlanName, utcnow
from app.services.catalog_service import CouponStore
from app.services.subscription_service import parse_billing_cycle, parse_plan_name
from app.utils.currency import quantize_amount, to_minor_units
from app.utils.dates import reference_today

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PricingQuote:
    plan: PlanName
    billing_cycle: BillingCycle | None
    base_price: Decimal
    discount_amount: Decimal
    points_applied: int
    final_amount: Decimal
    requires_payment: bool
    coupon_code: str | None = None

    @property
    def amount_minor_units(self) -> int:
        return to_minor_units(self.final_amount)

    def to_dict(self) -> dict[str, object]:
        return {
            "plan": self.plan.value,
            "billing_cycle": self.billing_cycle.value if self.billing_cycle else None,
            "base_price": self.base_price,
            "discount_amount": self.discount_amount,
            "points_applied": self.points_applied,
            "final_amount": self.final_amount,
            "requires_payment": self.requires_payment,
            "coupon_code": self.coupon_code,
        }


def free_quote() -> PricingQuote:
    return PricingQuote(
        plan=PlanName.FREE,
        billing_cycle=None,
        base_price=ZERO,
        discount_amount=ZERO,
        points_applied=0,
        final_amount=ZERO,
        requires_payment=False,
    )


def compute_discount(coupon: models.Coupon, base_price: Decimal) -> Decimal:
    value = Decimal(coupon.discount_value)
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = base_price * value / Decimal(100)
        if coupon.max_discount is not None:
            discount = min(discount, Decimal(coupon.max_discount))
        return quantize_amount(discount)
    # Fixed amounts may exceed the base price unless clamping is switched on
    if settings.PRICING_CLAMP_FIXED_DISCOUNT:
        return quantize_amount(min(value, base_price))
    return quantize_amount(value)


def finalize_amount(nominal: Decimal) -> tuple[Decimal, bool]:
    """Apply the provider minimum; returns (final_amount, requires_payment)."""
    if nominal <= 0:
        return ZERO, False
    minimum = Decimal(settings.MIN_PAYABLE_AMOUNT)
    if nominal < minimum:
        return quantize_amount(minimum), True
    return quantize_amount(nominal), True


class PricingEngine:
    """Price a plan upgrade for one subscriber.

    ``evaluate`` returns coupon rejections as values; ``quote`` raises them.
    Missing plans, subscribers and malformed cycles always raise.
    """

    def __init__(self, db: Session, subscriber_id: int | None = None, now: dt.datetime | None = None):
        self.db = db
        self.subscriber_id = subscriber_id
        self.now = now
        self.coupons = CouponStore(db)

    def _subscriber(self) -> models.User | None:
        if self.subscriber_id is None:
            return None
        user = (
            self.db.query(models.User)
            .filter(models.User.id == self.subscriber_id, models.User.deleted_at.is_(None))
            .one_or_none()
        )
        if not user:
            raise SubscriberNotFoundError(self.subscriber_id)
        return user

    def _plan(self, plan: PlanName) -> models.Plan:
        record = (
            self.db.query(models.Plan)
            .filter(models.Plan.name == plan, models.Plan.deleted_at.is_(None))
            .order_by(models.Plan.id.desc())
            .first()
        )
        if not record:
            raise PlanNotFoundError(plan.value)
        return record

    def validate_coupon(self, code: str, base_price: Decimal) -> tuple[models.Coupon | None, CouponRejectedError | None]:
        """Check every redemption rule in order, stopping at the first failure."""
        coupon = self.coupons.find_redeemable(code)
        if coupon is None:
            return None, InvalidCouponError(code)
        if reference_today(self.now or utcnow()) > coupon.expiry_date:
            return coupon, CouponExpiredError(code, coupon.expiry_date.isoformat())
        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            return coupon, UsageLimitReachedError(code, coupon.usage_limit)
        if coupon.allowed_user_ids:
            allowed = {str(uid) for uid in coupon.allowed_user_ids}
            if self.subscriber_id is None or str(self.subscriber_id) not in allowed:
                return coupon, NotEligibleError(code)
        if coupon.min_purchase is not None and base_price < Decimal(coupon.min_purchase):
            return coupon, BelowMinimumPurchaseError(code, str(quantize_amount(coupon.min_purchase)))
        return coupon, None

    def reserve(self, coupon: models.Coupon) -> bool:
        """Increment ``used_count`` only if the coupon still has a use left."""
        result = self.db.execute(
            update(models.Coupon)
            .where(
                models.Coupon.id == coupon.id,
                or_(models.Coupon.usage_limit.is_(None), models.Coupon.used_count < models.Coupon.usage_limit),
            )
            .values(used_count=models.Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False
        self.db.refresh(coupon)
        return True

    def _reject(self, rejection: CouponRejectedError) -> tuple[None, CouponRejectedError]:
        metrics.coupon_rejected(rejection.reason)
        log_denied(
            "coupon.apply",
            user_id=self.subscriber_id,
            reason=rejection.reason,
            coupon_code=rejection.details.get("coupon_code"),
        )
        return None, rejection

    def evaluate(
        self,
        plan_name: PlanName | str,
        billing_cycle: BillingCycle | str | None = None,
        coupon_code: str | None = None,
        points: int = 0,
        reserve_coupon: bool = True,
    ) -> tuple[PricingQuote | None, CouponRejectedError | None]:
        plan = parse_plan_name(plan_name)
        if plan == PlanName.FREE:
            return free_quote(), None

        cycle = parse_billing_cycle(billing_cycle)
        if cycle is None:
            raise QuoteValidationError("Billing cycle is required for paid plans", field="billing_cycle")
        if points < 0:
            raise QuoteValidationError("Points cannot be negative", field="points")

        subscriber = self._subscriber()
        base_price = quantize_amount(self._plan(plan).price_for(cycle))

        discount = ZERO
        if coupon_code:
            coupon, rejection = self.validate_coupon(coupon_code, base_price)
            if rejection is not None:
                return self._reject(rejection)
            discount = compute_discount(coupon, base_price)
            if reserve_coupon:
                if not self.reserve(coupon):
                    return self._reject(UsageLimitReachedError(coupon_code, coupon.usage_limit))
                metrics.coupon_redeemed()
                logger.info(
                    "Coupon %s redeemed by user %s (used %s/%s)",
                    coupon_code, self.subscriber_id, coupon.used_count, coupon.usage_limit,
                )

        points_applied = 0
        remaining = base_price - discount
        if points and subscriber is not None and remaining > 0:
            # Never spend more points than the amount still owed
            owed = int(remaining.to_integral_value(rounding=ROUND_CEILING))
            points_applied = min(points, subscriber.points, owed)

        final_amount, requires_payment = finalize_amount(remaining - points_applied)
        quote = PricingQuote(
            plan=plan,
            billing_cycle=cycle,
            base_price=base_price,
            discount_amount=discount,
            points_applied=points_applied,
            final_amount=final_amount,
            requires_payment=requires_payment,
            coupon_code=coupon_code or None,
        )
        logger.debug("Quote for user %s: %s", self.subscriber_id, quote)
        return quote, None

    def quote(
        self,
        plan_name: PlanName | str,
        billing_cycle: BillingCycle | str | None = None,
        coupon_code: str | None = None,
        points: int = 0,
        reserve_coupon: bool = True,
    ) -> PricingQuote:
        """Like ``evaluate`` but raises the coupon rejection."""
        quote, rejection = self.evaluate(plan_name, billing_cycle, coupon_code, points, reserve_coupon)
        if rejection is not None:
            raise rejection
        return quote
