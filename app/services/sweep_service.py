"""
Nightly subscription sweep.

Three passes run in order, each isolated from per-record failures:

a. Deactivation: paid subscriptions whose expiry fell before today are moved
   back to Free in one bulk UPDATE. No email.
b. Reminders: for each offset in REMINDER_OFFSETS_DAYS, paid role=User
   subscribers expiring on that exact future day get one email.
c. Due notifications: Pending user-authored notifications scheduled for today
   are emailed to their owner and marked Sent.

"Today" is the calendar day in SWEEP_TIMEZONE. Every record yields a tagged
outcome (Sent, Skipped or Failed); for the deactivation pass Sent means the
downgrade was applied. Emails within a pass are sent concurrently and the
pass waits for the whole batch.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Awaitable, Protocol

from sqlalchemy import update
from sqlalchemy.orm import Session

from app import metrics
from app.core.config import settings
from app.models import models
from app.models.models import BillingType, NotificationStatus, PaymentStatus, PlanName, Role, utcnow
from app.services.notification.service import NotificationService
from app.utils.dates import day_bounds_utc, reference_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sent:
    record_id: int
    detail: str | None = None


@dataclass(frozen=True)
class Skipped:
    record_id: int
    reason: str


@dataclass(frozen=True)
class Failed:
    record_id: int
    error: str


SweepOutcome = Sent | Skipped | Failed


@dataclass
class PassResult:
    name: str
    outcomes: list[SweepOutcome] = field(default_factory=list)

    @property
    def sent(self) -> list[Sent]:
        return [o for o in self.outcomes if isinstance(o, Sent)]

    @property
    def skipped(self) -> list[Skipped]:
        return [o for o in self.outcomes if isinstance(o, Skipped)]

    @property
    def failed(self) -> list[Failed]:
        return [o for o in self.outcomes if isinstance(o, Failed)]

    def summary(self) -> dict[str, int]:
        tally = Counter(type(o).__name__.lower() for o in self.outcomes)
        return {"sent": tally["sent"], "skipped": tally["skipped"], "failed": tally["failed"]}


@dataclass
class SweepReport:
    run_date: dt.date
    deactivation: PassResult
    reminders: PassResult
    notifications: PassResult

    @property
    def passes(self) -> tuple[PassResult, ...]:
        return (self.deactivation, self.reminders, self.notifications)

    def summary(self) -> dict[str, object]:
        return {"run_date": self.run_date.isoformat(), **{p.name: p.summary() for p in self.passes}}


class EmailSender(Protocol):
    def send_subscription_reminder(self, user: models.User, days: int) -> Awaitable[None]: ...

    def send_notification(
        self,
        user: models.User,
        notification: models.Notification,
        policy_label: str | None = None,
        product_label: str | None = None,
        policy_expiry: dt.date | None = None,
    ) -> Awaitable[None]: ...


async def _deliver(record_id: int, send: Awaitable[None], detail: str | None = None) -> SweepOutcome:
    try:
        await send
    except Exception as exc:  # noqa: BLE001 - one bad recipient must not sink the batch
        logger.warning("Sweep email for record %s failed: %s", record_id, exc)
        return Failed(record_id, str(exc) or type(exc).__name__)
    return Sent(record_id, detail)


class SubscriptionSweep:
    def __init__(self, db: Session, sender: EmailSender | None = None, now: dt.datetime | None = None):
        self.db = db
        self.sender = sender or NotificationService()
        self.now = now

    def _record(self, result: PassResult, started: float) -> PassResult:
        for kind in ("sent", "skipped", "failed"):
            metrics.sweep_outcome(result.name, kind, result.summary()[kind])
        metrics.sweep_pass_duration(result.name, time.monotonic() - started)
        logger.info("Sweep pass %s: %s", result.name, result.summary())
        return result

    def deactivate_expired(self, today: dt.date) -> PassResult:
        result = PassResult("deactivation")
        started = time.monotonic()
        cutoff, _ = day_bounds_utc(today)
        criteria = (
            models.User.plan != PlanName.FREE,
            models.User.subscription_expiry_date.is_not(None),
            models.User.subscription_expiry_date < cutoff,
            models.User.deleted_at.is_(None),
        )
        expired = self.db.query(models.User.id, models.User.plan).filter(*criteria).all()
        expired_ids = [uid for uid, _ in expired]
        if not expired_ids:
            return self._record(result, started)
        try:
            self.db.execute(
                update(models.User)
                .where(*criteria)
                .values(
                    plan=PlanName.FREE,
                    billing_type=BillingType.UNLIMITED,
                    payment_status=PaymentStatus.PENDING,
                )
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as exc:  # noqa: BLE001
            self.db.rollback()
            logger.exception("Deactivation pass failed")
            result.outcomes.extend(Failed(uid, str(exc)) for uid in expired_ids)
            return self._record(result, started)
        self.db.expire_all()
        for uid, previous_plan in expired:
            result.outcomes.append(Sent(uid, "downgraded"))
            metrics.subscription_changed(previous_plan.value, PlanName.FREE.value, source="sweep")
        return self._record(result, started)

    async def send_reminders(self, today: dt.date) -> PassResult:
        result = PassResult("reminders")
        started = time.monotonic()
        deliveries: list[Awaitable[SweepOutcome]] = []
        for days in settings.REMINDER_OFFSETS_DAYS:
            start, end = day_bounds_utc(today + dt.timedelta(days=days))
            users = (
                self.db.query(models.User)
                .filter(
                    models.User.plan != PlanName.FREE,
                    models.User.role == Role.USER,
                    models.User.deleted_at.is_(None),
                    models.User.subscription_expiry_date >= start,
                    models.User.subscription_expiry_date < end,
                )
                .all()
            )
            for user in users:
                if not user.email:
                    result.outcomes.append(Skipped(user.id, "no_email"))
                    continue
                deliveries.append(
                    _deliver(user.id, self.sender.send_subscription_reminder(user, days), f"{days} days")
                )
        result.outcomes.extend(await asyncio.gather(*deliveries))
        return self._record(result, started)

    async def dispatch_notifications(self, today: dt.date) -> PassResult:
        result = PassResult("notifications")
        started = time.monotonic()
        due = (
            self.db.query(models.Notification)
            .filter(
                models.Notification.status == NotificationStatus.PENDING,
                models.Notification.deleted_at.is_(None),
                models.Notification.schedule_date == today,
            )
            .order_by(models.Notification.id)
            .all()
        )
        deliveries: list[Awaitable[SweepOutcome]] = []
        pending: dict[int, models.Notification] = {}
        for notification in due:
            owner = (
                self.db.query(models.User)
                .filter(models.User.id == notification.user_id, models.User.deleted_at.is_(None))
                .one_or_none()
            )
            if owner is None:
                result.outcomes.append(Skipped(notification.id, "owner_not_found"))
                continue
            if not owner.email:
                result.outcomes.append(Skipped(notification.id, "no_email"))
                continue
            policy = self.db.get(models.Policy, notification.policy_id) if notification.policy_id else None
            product = self.db.get(models.Product, notification.product_id) if notification.product_id else None
            pending[notification.id] = notification
            deliveries.append(
                _deliver(
                    notification.id,
                    self.sender.send_notification(
                        owner,
                        notification,
                        policy_label=policy.policy_number if policy else None,
                        product_label=product.name if product else None,
                        policy_expiry=policy.expiry_date if policy else None,
                    ),
                )
            )

        outcomes = await asyncio.gather(*deliveries)
        sent_at = self.now or utcnow()
        for outcome in outcomes:
            if isinstance(outcome, Sent):
                notification = pending[outcome.record_id]
                notification.status = NotificationStatus.SENT
                notification.sent_at = sent_at
        self.db.commit()
        result.outcomes.extend(outcomes)
        return self._record(result, started)

    async def run(self) -> SweepReport:
        today = reference_today(self.now)
        logger.info("Starting subscription sweep for %s (%s)", today, settings.SWEEP_TIMEZONE)
        deactivation = self.deactivate_expired(today)
        reminders = await self.send_reminders(today)
        notifications = await self.dispatch_notifications(today)
        report = SweepReport(today, deactivation, reminders, notifications)
        logger.info("Subscription sweep finished: %s", report.summary())
        return report
