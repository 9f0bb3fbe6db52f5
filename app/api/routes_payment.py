"""Checkout: create a Razorpay order for a priced upgrade, then verify the callback."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from app.api.dependencies import CurrentUserDep, DbDep
from app.api.rate_limit import PAYMENT_RATE_LIMIT, limiter
from app.core.exceptions import PaymentVerificationFailedError
from app.models.schemas import PaymentOrderOut, PaymentVerifyIn, PaymentVerifyOut, QuoteOut, QuoteRequest
from app.services.payment_service import PaymentBridge
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/initiate", response_model=PaymentOrderOut, response_model_exclude_none=True)
@limiter.limit(PAYMENT_RATE_LIMIT)
async def initiate_payment(request: Request, payload: QuoteRequest, current_user_id: CurrentUserDep, db: DbDep):
    """
    Price the upgrade and open a provider order.

    **Flow:**
    1. Quote (coupon use is reserved here)
    2. Razorpay order for the final amount, in paise
    3. Client completes checkout, then calls /payments/verify and /plans/select-plan

    When nothing is payable (Free, or discounts cover the price) no order is
    created and the plan is applied immediately; the response then carries
    a fresh access token instead of an order id.
    """
    bridge = PaymentBridge(db, current_user_id)
    handle = await bridge.create_order(
        payload.plan,
        payload.billing_cycle,
        coupon_code=payload.coupon_code,
        points=payload.points,
    )
    response = PaymentOrderOut(
        order_id=handle.order_id,
        amount=handle.amount,
        amount_minor=handle.amount_minor,
        currency=handle.currency,
        receipt=handle.receipt,
        key_id=handle.key_id,
        requires_payment=handle.requires_payment,
        quote=QuoteOut(**handle.quote.to_dict()),
    )
    if not handle.requires_payment:
        result = SubscriptionService(db).select_plan(
            current_user_id,
            handle.quote.plan,
            handle.quote.billing_cycle,
            points_spent=handle.quote.points_applied,
        )
        response.access_token = result.access_token
    return response


@router.post("/verify", response_model=PaymentVerifyOut)
@limiter.limit(PAYMENT_RATE_LIMIT)
def verify_payment(request: Request, payload: PaymentVerifyIn, current_user_id: CurrentUserDep, db: DbDep):
    """Authenticate the checkout callback. Does not change the plan."""
    bridge = PaymentBridge(db, current_user_id)
    if not bridge.verify_callback(payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature):
        raise PaymentVerificationFailedError()
    return PaymentVerifyOut(verified=True, order_id=payload.razorpay_order_id)
