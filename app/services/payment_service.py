from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm import Session

from app import metrics
from app.core.audit import log_audit_event, log_denied, log_failure
from app.core.config import settings
from app.core.exceptions import OrderMismatchError, PaymentVerificationFailedError, ProviderError
from app.models import models
from app.models.models import BillingCycle, PlanName, utcnow
from app.services.payment_providers import RazorpayProvider, get_provider
from app.services.pricing_service import PricingEngine, PricingQuote
from app.services.subscription_service import parse_billing_cycle, parse_plan_name
from app.utils.id_generator import generate_receipt_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderHandle:
    """What the client needs to open checkout; ``order_id`` is None when nothing is payable."""

    order_id: str | None
    amount: Decimal
    amount_minor: int
    currency: str
    receipt: str | None
    key_id: str | None
    quote: PricingQuote

    @property
    def requires_payment(self) -> bool:
        return self.order_id is not None


class PaymentBridge:
    """Creates provider orders for a priced upgrade and authenticates provider callbacks.

    Neither operation changes a subscriber's plan; that is SubscriptionService's job
    once the callback has been verified.
    """

    def __init__(
        self,
        db: Session,
        subscriber_id: int | None = None,
        provider: RazorpayProvider | None = None,
        now: dt.datetime | None = None,
    ):
        self.db = db
        self.subscriber_id = subscriber_id
        self.provider = provider or get_provider()
        self.pricing = PricingEngine(db, subscriber_id, now=now)

    async def create_order(
        self,
        plan_name: PlanName | str,
        billing_cycle: BillingCycle | str | None = None,
        coupon_code: str | None = None,
        points: int = 0,
    ) -> OrderHandle:
        quote = self.pricing.quote(plan_name, billing_cycle, coupon_code, points, reserve_coupon=True)

        if not quote.requires_payment:
            # Coupon use (if any) is still consumed for a fully discounted upgrade
            self.db.commit()
            metrics.payment_order_skipped(quote.plan.value)
            logger.info("No payment required for user %s upgrading to %s", self.subscriber_id, quote.plan.value)
            return OrderHandle(
                order_id=None,
                amount=quote.final_amount,
                amount_minor=0,
                currency=settings.PAYMENT_CURRENCY,
                receipt=None,
                key_id=None,
                quote=quote,
            )

        receipt = generate_receipt_id()
        try:
            order = await self.provider.create_order(quote.amount_minor_units, settings.PAYMENT_CURRENCY, receipt)
        except ProviderError as exc:
            # Release the coupon reservation taken by the quote
            self.db.rollback()
            metrics.payment_order_failed(quote.plan.value)
            log_failure(
                "payment.create_order",
                user_id=self.subscriber_id,
                error=exc.message,
                plan=quote.plan.value,
                receipt=receipt,
            )
            raise

        self.db.add(
            models.PaymentOrder(
                order_id=order["id"],
                user_id=self.subscriber_id,
                plan=quote.plan,
                billing_cycle=quote.billing_cycle,
                amount=quote.final_amount,
                points_applied=quote.points_applied,
                coupon_code=quote.coupon_code,
            )
        )
        self.db.commit()
        metrics.payment_order_created(quote.plan.value)
        log_audit_event(
            "payment.create_order",
            user_id=self.subscriber_id,
            order_id=order["id"],
            plan=quote.plan.value,
            amount=quote.final_amount,
            coupon_code=quote.coupon_code,
            points_applied=quote.points_applied,
        )
        logger.info(
            "Created Razorpay order %s for user %s: %s %s",
            order["id"], self.subscriber_id, quote.final_amount, settings.PAYMENT_CURRENCY,
        )
        return OrderHandle(
            order_id=order["id"],
            amount=quote.final_amount,
            amount_minor=int(order.get("amount", quote.amount_minor_units)),
            currency=order.get("currency", settings.PAYMENT_CURRENCY),
            receipt=receipt,
            key_id=self.provider.key_id,
            quote=quote,
        )

    def verify_callback(self, order_id: str | None, payment_id: str | None, signature: str | None) -> bool:
        """Constant-time HMAC check of a checkout callback. Performs no writes."""
        verified = self.provider.verify_signature(order_id, payment_id, signature)
        metrics.payment_verification(verified)
        if verified:
            log_audit_event("payment.verify", user_id=self.subscriber_id, order_id=order_id, payment_id=payment_id)
        else:
            log_denied(
                "payment.verify",
                user_id=self.subscriber_id,
                reason="signature_mismatch" if order_id and payment_id and signature else "missing_field",
                order_id=order_id,
                signature=signature,
            )
        return verified

    def claim_order(
        self,
        order_id: str,
        plan_name: PlanName | str,
        billing_cycle: BillingCycle | str | None,
    ) -> models.PaymentOrder:
        """Mark the subscriber's order as used and return it.

        The caller commits, together with the plan change. Unknown, foreign
        and already used orders fail verification; a plan or cycle other
        than the one the order was priced for raises ``OrderMismatchError``.
        """
        record = (
            self.db.query(models.PaymentOrder)
            .filter(
                models.PaymentOrder.order_id == order_id,
                models.PaymentOrder.user_id == self.subscriber_id,
            )
            .one_or_none()
        )
        if record is None or record.consumed_at is not None:
            log_denied(
                "payment.claim_order",
                user_id=self.subscriber_id,
                reason="unknown_order" if record is None else "order_reused",
                order_id=order_id,
            )
            raise PaymentVerificationFailedError()

        plan = parse_plan_name(plan_name)
        cycle = parse_billing_cycle(billing_cycle)
        if record.plan != plan or record.billing_cycle != cycle:
            log_denied(
                "payment.claim_order",
                user_id=self.subscriber_id,
                reason="order_mismatch",
                order_id=order_id,
                plan=plan.value,
            )
            raise OrderMismatchError(order_id, record.plan.value, record.billing_cycle.value)

        # Conditional on consumed_at so a concurrent claim of the same order loses
        claimed = self.db.execute(
            update(models.PaymentOrder)
            .where(models.PaymentOrder.id == record.id, models.PaymentOrder.consumed_at.is_(None))
            .values(consumed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            log_denied("payment.claim_order", user_id=self.subscriber_id, reason="order_reused", order_id=order_id)
            raise PaymentVerificationFailedError()
        return record
