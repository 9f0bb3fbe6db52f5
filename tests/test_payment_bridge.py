"""Payment bridge: Razorpay order creation and callback signature checks."""
import datetime as dt
import hashlib
import hmac
from decimal import Decimal

import httpx
import pytest

from app.core.exceptions import OrderMismatchError, PaymentVerificationFailedError, ProviderError
from app.db.session import SessionLocal
from app.models import models
from app.models.models import BillingCycle, DiscountType, PlanName
from app.services.catalog_service import CouponStore
from app.services.payment_providers import RazorpayProvider
from app.services.payment_service import PaymentBridge

SECRET = "test-razorpay-secret"


def _signature(order_id: str, payment_id: str, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def capture_orders(monkeypatch):
    """Replace the Razorpay HTTP call; records each request and replies with ``response``."""
    calls: list[dict] = []
    state = {"status": 200, "body": {"id": "order_TEST123", "amount": None, "currency": "INR"}, "raise": None}

    async def fake_post(self, url, **kwargs):
        calls.append({"url": url, **kwargs})
        if state["raise"] is not None:
            raise state["raise"]
        body = dict(state["body"])
        if body.get("amount") is None and "json" in kwargs:
            body["amount"] = kwargs["json"]["amount"]
        return httpx.Response(state["status"], json=body, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)
    return calls, state


@pytest.fixture
def save10(db_session):
    return CouponStore(db_session).create(
        code="SAVE10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
        max_discount=Decimal("50"),
        expiry_date=dt.date.today() + dt.timedelta(days=30),
        usage_limit=5,
    )


def _used_count(coupon_id: int) -> int:
    fresh = SessionLocal()
    try:
        return fresh.get(models.Coupon, coupon_id).used_count
    finally:
        fresh.close()


class TestVerifyCallback:
    def test_valid_signature(self, db_session):
        bridge = PaymentBridge(db_session, subscriber_id=1)
        assert bridge.verify_callback("order_1", "pay_1", _signature("order_1", "pay_1")) is True

    def test_single_character_mutation_rejected(self, db_session):
        good = _signature("order_1", "pay_1")
        mutated = ("0" if good[0] != "0" else "1") + good[1:]
        bridge = PaymentBridge(db_session, subscriber_id=1)
        assert bridge.verify_callback("order_1", "pay_1", mutated) is False

    def test_swapped_ids_rejected(self, db_session):
        bridge = PaymentBridge(db_session, subscriber_id=1)
        assert bridge.verify_callback("pay_1", "order_1", _signature("order_1", "pay_1")) is False

    def test_non_ascii_signature_rejected(self, db_session):
        good = _signature("order_1", "pay_1")
        bridge = PaymentBridge(db_session, subscriber_id=1)
        assert bridge.verify_callback("order_1", "pay_1", "\u00e9" + good[1:]) is False
        assert bridge.verify_callback("order_\u00e9", "pay_1", good) is False

    @pytest.mark.parametrize(
        "order_id,payment_id,signature",
        [(None, "pay_1", "sig"), ("order_1", None, "sig"), ("order_1", "pay_1", None), ("", "pay_1", "sig")],
    )
    def test_missing_field_rejected(self, db_session, order_id, payment_id, signature):
        bridge = PaymentBridge(db_session, subscriber_id=1)
        assert bridge.verify_callback(order_id, payment_id, signature) is False


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_order_in_paise(self, db_session, seed_plans, make_user, save10, capture_orders):
        calls, _ = capture_orders
        user = make_user()

        handle = await PaymentBridge(db_session, user.id).create_order(
            PlanName.PRO, BillingCycle.MONTHLY, coupon_code="SAVE10"
        )

        assert handle.order_id == "order_TEST123"
        assert handle.requires_payment is True
        assert handle.amount == Decimal("949.00")
        assert handle.amount_minor == 94900
        assert handle.key_id == "rzp_test_key"
        assert len(calls) == 1
        assert calls[0]["url"].endswith("/orders")
        assert calls[0]["json"]["amount"] == 94900
        assert calls[0]["json"]["currency"] == "INR"
        assert calls[0]["json"]["receipt"] == handle.receipt
        assert calls[0]["auth"] == ("rzp_test_key", SECRET)
        assert _used_count(save10.id) == 1

        record = db_session.query(models.PaymentOrder).filter_by(order_id="order_TEST123").one()
        assert record.user_id == user.id
        assert record.plan == PlanName.PRO
        assert record.billing_cycle == BillingCycle.MONTHLY
        assert record.amount == Decimal("949.00")
        assert record.coupon_code == "SAVE10"
        assert record.consumed_at is None

    @pytest.mark.asyncio
    async def test_provider_error_passed_through(self, db_session, seed_plans, make_user, save10, capture_orders):
        _, state = capture_orders
        state["status"] = 400
        state["body"] = {"error": {"code": "BAD_REQUEST_ERROR", "description": "Order amount less than minimum amount allowed"}}
        user = make_user()

        with pytest.raises(ProviderError) as excinfo:
            await PaymentBridge(db_session, user.id).create_order(PlanName.PRO, BillingCycle.MONTHLY, "SAVE10")

        assert excinfo.value.message == "Order amount less than minimum amount allowed"
        assert excinfo.value.status_code == 502
        assert _used_count(save10.id) == 0

    @pytest.mark.asyncio
    async def test_timeout_is_provider_error(self, db_session, seed_plans, make_user, capture_orders):
        _, state = capture_orders
        state["raise"] = httpx.ReadTimeout("timed out")
        user = make_user()

        with pytest.raises(ProviderError):
            await PaymentBridge(db_session, user.id).create_order(PlanName.PRO, BillingCycle.YEARLY)

    @pytest.mark.asyncio
    async def test_free_plan_skips_provider(self, db_session, seed_plans, make_user, capture_orders):
        calls, _ = capture_orders
        user = make_user()

        handle = await PaymentBridge(db_session, user.id).create_order(PlanName.FREE)

        assert handle.order_id is None
        assert handle.requires_payment is False
        assert handle.amount_minor == 0
        assert calls == []
        assert db_session.query(models.PaymentOrder).count() == 0


class TestClaimOrder:
    @pytest.fixture
    def paid_order(self, db_session, seed_plans, make_user, capture_orders):
        async def _open(points: int = 0):
            user = make_user(points=points)
            await PaymentBridge(db_session, user.id).create_order(PlanName.PRO, BillingCycle.YEARLY, points=points)
            return user

        return _open

    @pytest.mark.asyncio
    async def test_claim_returns_priced_order(self, db_session, paid_order):
        user = await paid_order(points=40)

        record = PaymentBridge(db_session, user.id).claim_order("order_TEST123", PlanName.PRO, "Yearly")
        db_session.commit()

        assert record.points_applied == 40
        db_session.refresh(record)
        assert record.consumed_at is not None

    @pytest.mark.asyncio
    async def test_second_claim_fails(self, db_session, paid_order):
        user = await paid_order()
        bridge = PaymentBridge(db_session, user.id)
        bridge.claim_order("order_TEST123", PlanName.PRO, BillingCycle.YEARLY)
        db_session.commit()

        with pytest.raises(PaymentVerificationFailedError):
            bridge.claim_order("order_TEST123", PlanName.PRO, BillingCycle.YEARLY)

    @pytest.mark.asyncio
    async def test_other_plan_or_cycle_mismatch(self, db_session, paid_order):
        user = await paid_order()
        bridge = PaymentBridge(db_session, user.id)

        with pytest.raises(OrderMismatchError):
            bridge.claim_order("order_TEST123", PlanName.FAMILY, BillingCycle.YEARLY)
        with pytest.raises(OrderMismatchError):
            bridge.claim_order("order_TEST123", PlanName.PRO, BillingCycle.MONTHLY)
        assert bridge.claim_order("order_TEST123", PlanName.PRO, BillingCycle.YEARLY).order_id == "order_TEST123"

    @pytest.mark.asyncio
    async def test_unknown_or_foreign_order(self, db_session, make_user, paid_order):
        await paid_order()
        stranger = make_user()

        with pytest.raises(PaymentVerificationFailedError):
            PaymentBridge(db_session, stranger.id).claim_order("order_TEST123", PlanName.PRO, BillingCycle.YEARLY)
        with pytest.raises(PaymentVerificationFailedError):
            PaymentBridge(db_session, stranger.id).claim_order("order_NOPE", PlanName.PRO, BillingCycle.YEARLY)


def test_provider_requires_credentials():
    with pytest.raises(ValueError):
        RazorpayProvider("", "")


def test_provider_signature_matches_hmac():
    provider = RazorpayProvider("rzp_key", "s3cret")
    assert provider.expected_signature("order_9", "pay_9") == _signature("order_9", "pay_9", "s3cret")
