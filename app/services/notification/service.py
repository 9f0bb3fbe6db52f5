"""Outbound email for subscription reminders and user-authored notifications."""
from __future__ import annotations

import datetime as dt
import logging
from typing import TYPE_CHECKING

from app.core.config import settings
from app.models.models import as_utc
from app.services.notification import email_helpers
from app.utils.dates import reference_tz

if TYPE_CHECKING:  # pragma: no cover
    from app.models import models

logger = logging.getLogger(__name__)

SUBSCRIPTION_REMINDER_SUBJECT = "Subscription Expiry Reminder: {days} days left"
NOTIFICATION_SUBJECT = "Policy Expiry Reminder"


def subscription_reminder_subject(days: int) -> str:
    return SUBSCRIPTION_REMINDER_SUBJECT.format(days=days)


class NotificationService:
    """Renders and sends the sweep's emails.

    Every send raises on failure; callers decide whether a failure is fatal.
    """

    async def send_subscription_reminder(self, user: models.User, days: int) -> None:
        if not user.email:
            raise ValueError(f"User {user.id} has no email address")
        expiry = as_utc(user.subscription_expiry_date)
        if expiry is not None:
            # Reminders are matched by calendar day in the reference timezone
            expiry = expiry.astimezone(reference_tz())
        html = email_helpers.render_email(
            "subscription_reminder.html",
            name=user.name,
            plan=user.plan.value,
            billing_type=user.billing_type.value,
            days=days,
            expiry_date=expiry.strftime("%B %d, %Y") if expiry else "",
            renew_url=f"{settings.FRONTEND_URL.rstrip('/')}/plans/upgrade",
        )
        text = (
            f"Dear {user.name},\n\nYour {user.plan.value} subscription expires in {days} days. "
            "Renew to keep your current limits.\n"
        )
        await email_helpers.send_email_async(user.email, subscription_reminder_subject(days), html, text)

    async def send_notification(
        self,
        user: models.User,
        notification: models.Notification,
        policy_label: str | None = None,
        product_label: str | None = None,
        policy_expiry: dt.date | None = None,
    ) -> None:
        if not user.email:
            raise ValueError(f"User {user.id} has no email address")
        html = email_helpers.render_email(
            "notification_reminder.html",
            name=user.name,
            policy=policy_label,
            product=product_label,
            expiry_date=policy_expiry.strftime("%B %d, %Y") if policy_expiry else None,
            message=notification.message,
        )
        await email_helpers.send_email_async(user.email, NOTIFICATION_SUBJECT, html, notification.message)
