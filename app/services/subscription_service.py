"""Subscription lifecycle: plan selection and the lazily computed billing state.

Subscriber billing columns (plan, billing_type, dates, payment_status, points)
are written only here and by the nightly sweep.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from app import metrics
from app.core.audit import log_audit_event
from app.core.exceptions import PlanNotFoundError, QuoteValidationError, SubscriberNotFoundError
from app.core.security import create_access_token
from app.models import models
from app.models.models import BillingCycle, BillingType, PaymentStatus, PlanName, as_utc, utcnow

logger = logging.getLogger(__name__)


def parse_plan_name(value: PlanName | str) -> PlanName:
    if isinstance(value, PlanName):
        return value
    try:
        return PlanName(value)
    except ValueError:
        raise PlanNotFoundError(value) from None


def parse_billing_cycle(value: BillingCycle | str | None) -> BillingCycle | None:
    if value is None or isinstance(value, BillingCycle):
        return value
    try:
        return BillingCycle(value)
    except ValueError:
        raise QuoteValidationError(
            f"Unknown billing cycle '{value}'. Choose Monthly or Yearly.", field="billing_cycle"
        ) from None


def subscription_state(user: models.User, now: dt.datetime | None = None) -> PaymentStatus:
    """Billing state evaluated at ``now`` rather than read from storage.

    A paid subscription whose expiry has passed is Expired even if the
    nightly sweep has not downgraded it yet.
    """
    now = now or utcnow()
    if user.plan == PlanName.FREE:
        # Downgraded subscribers keep their past dates but are Pending like any Free account
        return PaymentStatus.PENDING
    expiry = as_utc(user.subscription_expiry_date)
    if expiry is None:
        return PaymentStatus.PENDING
    if now > expiry:
        return PaymentStatus.EXPIRED
    return PaymentStatus.ACTIVE


def effective_plan(user: models.User, now: dt.datetime | None = None) -> PlanName:
    """Plan whose limits apply right now; a lapsed paid plan counts as Free."""
    if user.plan != PlanName.FREE and subscription_state(user, now) == PaymentStatus.EXPIRED:
        return PlanName.FREE
    return user.plan


@dataclass(frozen=True)
class SelectPlanResult:
    user: models.User
    previous_plan: PlanName
    access_token: str
    points_deducted: int


class SubscriptionService:
    def __init__(self, db: Session):
        self.db = db

    def _get_user(self, subscriber_id: int) -> models.User:
        user = (
            self.db.query(models.User)
            .filter(models.User.id == subscriber_id, models.User.deleted_at.is_(None))
            .one_or_none()
        )
        if not user:
            raise SubscriberNotFoundError(subscriber_id)
        return user

    def _deduct_points(self, user: models.User, points: int) -> int:
        """Atomically subtract ``points`` with a floor at zero; returns what was taken."""
        if points <= 0:
            return 0
        before = user.points
        self.db.execute(
            update(models.User)
            .where(models.User.id == user.id)
            .values(
                points=case(
                    (models.User.points >= points, models.User.points - points),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(user)
        return before - user.points

    def select_plan(
        self,
        subscriber_id: int,
        plan_name: PlanName | str,
        cycle: BillingCycle | str | None = None,
        points_spent: int = 0,
        now: dt.datetime | None = None,
    ) -> SelectPlanResult:
        """Commit a plan choice for the subscriber.

        Callers must have verified payment first when the plan is paid; this
        method does not look at the provider at all.
        """
        plan = parse_plan_name(plan_name)
        billing_cycle = parse_billing_cycle(cycle)
        user = self._get_user(subscriber_id)
        previous = user.plan
        now = now or utcnow()
        deducted = 0

        if plan == PlanName.FREE:
            user.plan = PlanName.FREE
            user.billing_type = BillingType.UNLIMITED
            user.payment_status = PaymentStatus.PENDING
            user.subscription_start_date = None
            user.subscription_expiry_date = None
        else:
            if billing_cycle is None:
                raise QuoteValidationError("Billing cycle is required for paid plans", field="billing_cycle")
            user.plan = plan
            user.billing_type = BillingType.for_cycle(billing_cycle)
            user.payment_status = PaymentStatus.ACTIVE
            user.subscription_start_date = now
            user.subscription_expiry_date = now + billing_cycle.duration
            self.db.flush()
            deducted = self._deduct_points(user, points_spent)

        self.db.commit()
        self.db.refresh(user)

        token = create_access_token(user.id, user.role.value)
        metrics.subscription_changed(previous.value, plan.value)
        log_audit_event(
            "subscription.select_plan",
            user_id=user.id,
            from_plan=previous.value,
            to_plan=plan.value,
            billing_type=user.billing_type.value,
            points_deducted=deducted,
        )
        logger.info(
            "User %s moved %s -> %s (%s), points deducted=%d",
            user.id, previous.value, plan.value, user.billing_type.value, deducted,
        )
        return SelectPlanResult(user=user, previous_plan=previous, access_token=token, points_deducted=deducted)

    def status(self, subscriber_id: int, now: dt.datetime | None = None) -> dict[str, object]:
        user = self._get_user(subscriber_id)
        now = now or utcnow()
        state = subscription_state(user, now)
        expiry = as_utc(user.subscription_expiry_date)
        days_remaining = None
        if state == PaymentStatus.ACTIVE and expiry is not None:
            days_remaining = max((expiry - now).days, 0)
        return {
            "plan": user.plan.value,
            "effective_plan": effective_plan(user, now).value,
            "billing_type": user.billing_type.value,
            "payment_status": state.value,
            "subscription_start_date": as_utc(user.subscription_start_date),
            "subscription_expiry_date": expiry,
            "days_remaining": days_remaining,
            "points": user.points,
        }
