"""Pricing engine: coupon rules, points and the provider minimum."""
import datetime as dt
from decimal import Decimal

import pytest

from app.core.exceptions import (
    BelowMinimumPurchaseError,
    CouponExpiredError,
    InvalidCouponError,
    NotEligibleError,
    PlanNotFoundError,
    QuoteValidationError,
    UsageLimitReachedError,
)
from app.models.models import BillingCycle, DiscountType, PlanName
from app.services.catalog_service import CouponStore
from app.services.pricing_service import PricingEngine

# Midday UTC, so the reference day in Asia/Kolkata is the same calendar day
NOW = dt.datetime(2025, 1, 10, 6, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def make_coupon(db_session):
    def _make(code="SAVE10", **fields):
        values = {
            "code": code,
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "expiry_date": dt.date(2025, 12, 31),
        }
        used_count = fields.pop("used_count", 0)
        values.update(fields)
        coupon = CouponStore(db_session).create(**values)
        if used_count:
            coupon.used_count = used_count
            db_session.commit()
        return coupon

    return _make


@pytest.fixture
def subscriber(make_user):
    return make_user(points=100)


def _engine(db, user):
    return PricingEngine(db, user.id, now=NOW)


class TestDiscounts:
    def test_percentage_capped_by_max_discount(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon(max_discount=Decimal("50"))

        quote = _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")

        assert quote.base_price == Decimal("999.00")
        assert quote.discount_amount == Decimal("50.00")
        assert quote.final_amount == Decimal("949.00")
        assert quote.requires_payment is True
        assert quote.amount_minor_units == 94900

    def test_percentage_without_cap(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon()
        quote = _engine(db_session, subscriber).quote(PlanName.PRO, "Yearly", "SAVE10")
        assert quote.discount_amount == Decimal("999.90")
        assert quote.final_amount == Decimal("8999.10")

    def test_fixed_amount(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon("FLAT200", discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("200"))
        quote = _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "FLAT200")
        assert quote.final_amount == Decimal("799.00")

    def test_fixed_amount_larger_than_price_is_free(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon("BIG", discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("1500"))
        quote = _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "BIG")
        assert quote.discount_amount == Decimal("1500.00")
        assert quote.final_amount == Decimal("0.00")
        assert quote.requires_payment is False

    def test_fixed_amount_clamped_when_enabled(self, db_session, seed_plans, subscriber, make_coupon, monkeypatch):
        from app.core.config import settings

        monkeypatch.setattr(settings, "PRICING_CLAMP_FIXED_DISCOUNT", True)
        make_coupon("BIG", discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("1500"))
        quote = _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "BIG")
        assert quote.discount_amount == Decimal("999.00")

    def test_provider_minimum(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon("ALMOST", discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("998.50"))
        quote = _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "ALMOST")
        assert quote.final_amount == Decimal("1.00")
        assert quote.requires_payment is True


class TestCouponRules:
    def test_unknown_code(self, db_session, seed_plans, subscriber):
        with pytest.raises(InvalidCouponError):
            _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "NOPE")

    def test_codes_are_case_sensitive(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon()
        with pytest.raises(InvalidCouponError):
            _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "save10")

    def test_inactive_coupon_is_invalid(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon(is_active=False)
        with pytest.raises(InvalidCouponError):
            _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")

    def test_expired_yesterday(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon(expiry_date=dt.date(2025, 1, 9))
        with pytest.raises(CouponExpiredError):
            _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")

    def test_valid_through_expiry_day(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon(expiry_date=dt.date(2025, 1, 10))
        quote = _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")
        assert quote.coupon_code == "SAVE10"

    def test_allow_list(self, db_session, seed_plans, subscriber, make_user, make_coupon):
        other = make_user()
        make_coupon(allowed_user_ids=[other.id])
        with pytest.raises(NotEligibleError):
            _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")
        assert _engine(db_session, other).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10").discount_amount > 0

    def test_minimum_purchase(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon(min_purchase=Decimal("1000"))
        with pytest.raises(BelowMinimumPurchaseError):
            _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")
        assert _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.YEARLY, "SAVE10").requires_payment

    def test_evaluate_returns_rejection_as_value(self, db_session, seed_plans, subscriber):
        quote, rejection = _engine(db_session, subscriber).evaluate(PlanName.PRO, BillingCycle.MONTHLY, "NOPE")
        assert quote is None
        assert rejection.reason == "invalid"


class TestUsageLimit:
    def test_last_use_then_rejected(self, db_session, seed_plans, subscriber, make_coupon):
        coupon = make_coupon(usage_limit=2, used_count=1)
        engine = _engine(db_session, subscriber)

        engine.quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")
        db_session.commit()
        db_session.refresh(coupon)
        assert coupon.used_count == 2

        with pytest.raises(UsageLimitReachedError):
            engine.quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")

    def test_preview_does_not_consume(self, db_session, seed_plans, subscriber, make_coupon):
        coupon = make_coupon(usage_limit=1)
        engine = _engine(db_session, subscriber)
        for _ in range(3):
            engine.quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10", reserve_coupon=False)
        db_session.refresh(coupon)
        assert coupon.used_count == 0

    def test_unlimited_usage(self, db_session, seed_plans, subscriber, make_coupon):
        coupon = make_coupon(used_count=500)
        _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")
        db_session.refresh(coupon)
        assert coupon.used_count == 501


class TestPoints:
    def test_points_reduce_final_amount(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon(max_discount=Decimal("50"))
        quote = _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10", points=100)
        assert quote.points_applied == 100
        assert quote.final_amount == Decimal("849.00")

    def test_points_capped_by_balance(self, db_session, seed_plans, make_user):
        user = make_user(points=30)
        quote = _engine(db_session, user).quote(PlanName.PRO, BillingCycle.MONTHLY, points=100)
        assert quote.points_applied == 30
        assert quote.final_amount == Decimal("969.00")

    def test_points_capped_by_amount_owed(self, db_session, seed_plans, subscriber, make_coupon):
        make_coupon("FLAT990", discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("990"))
        quote = _engine(db_session, subscriber).quote(PlanName.PRO, BillingCycle.MONTHLY, "FLAT990", points=100)
        assert quote.points_applied == 9
        assert quote.requires_payment is False


class TestPlans:
    def test_free_is_zero(self, db_session, seed_plans, subscriber):
        quote = _engine(db_session, subscriber).quote(PlanName.FREE, points=50)
        assert quote.final_amount == Decimal("0.00")
        assert quote.points_applied == 0
        assert quote.requires_payment is False

    def test_paid_plan_requires_cycle(self, db_session, seed_plans, subscriber):
        with pytest.raises(QuoteValidationError):
            _engine(db_session, subscriber).quote(PlanName.PRO)

    def test_bad_cycle(self, db_session, seed_plans, subscriber):
        with pytest.raises(QuoteValidationError):
            _engine(db_session, subscriber).quote(PlanName.PRO, "Weekly")

    def test_unknown_plan(self, db_session, seed_plans, subscriber):
        with pytest.raises(PlanNotFoundError):
            _engine(db_session, subscriber).quote("Platinum", BillingCycle.MONTHLY)

    def test_plan_row_missing(self, db_session, subscriber):
        with pytest.raises(PlanNotFoundError):
            _engine(db_session, subscriber).quote(PlanName.FAMILY, BillingCycle.MONTHLY)
