import datetime as dt

import pytest

from app.models import models
from app.models.models import BillingType, NotificationStatus, PlanName
from app.services.notification import email_helpers
from app.services.notification.service import NotificationService, subscription_reminder_subject


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def fake_send(recipient, subject, html_body, text_body=None):
        sent.append({"to": recipient, "subject": subject, "html": html_body, "text": text_body})

    monkeypatch.setattr(email_helpers, "send_email", fake_send)
    return sent


def _user(**fields):
    values = {
        "id": 7,
        "name": "Asha",
        "email": "asha@example.com",
        "plan": PlanName.PRO,
        "billing_type": BillingType.MONTHLY,
        "subscription_expiry_date": dt.datetime(2025, 7, 15, tzinfo=dt.timezone.utc),
    }
    values.update(fields)
    return models.User(**values)


def test_reminder_subject():
    assert subscription_reminder_subject(15) == "Subscription Expiry Reminder: 15 days left"


@pytest.mark.asyncio
async def test_subscription_reminder_rendered(outbox):
    await NotificationService().send_subscription_reminder(_user(), 30)

    assert len(outbox) == 1
    message = outbox[0]
    assert message["to"] == "asha@example.com"
    assert message["subject"] == "Subscription Expiry Reminder: 30 days left"
    assert "Asha" in message["html"]
    assert "July 15, 2025" in message["html"]


@pytest.mark.asyncio
async def test_reminder_date_in_reference_timezone(outbox):
    # 20:00 UTC is already the next morning in Asia/Kolkata
    late_evening = dt.datetime(2025, 7, 15, 20, 0, tzinfo=dt.timezone.utc)
    await NotificationService().send_subscription_reminder(_user(subscription_expiry_date=late_evening), 7)

    assert "July 16, 2025" in outbox[0]["html"]


@pytest.mark.asyncio
async def test_naive_expiry_treated_as_utc(outbox):
    await NotificationService().send_subscription_reminder(
        _user(subscription_expiry_date=dt.datetime(2025, 7, 15, 19, 0)), 7
    )

    assert "July 16, 2025" in outbox[0]["html"]


@pytest.mark.asyncio
async def test_policy_notification_rendered(outbox):
    notification = models.Notification(
        id=3, user_id=7, message="Renew before the 20th", schedule_date=dt.date(2025, 7, 1),
        status=NotificationStatus.PENDING,
    )

    await NotificationService().send_notification(
        _user(), notification, policy_label="POL-123", product_label="Car Insurance",
        policy_expiry=dt.date(2025, 7, 20),
    )

    message = outbox[0]
    assert message["subject"] == "Policy Expiry Reminder"
    assert "POL-123" in message["html"]
    assert "Renew before the 20th" in message["html"]


@pytest.mark.asyncio
async def test_missing_email_raises(outbox):
    with pytest.raises(ValueError):
        await NotificationService().send_subscription_reminder(_user(email=None), 5)
    assert outbox == []


def test_send_without_smtp_config_raises(monkeypatch):
    monkeypatch.setattr(email_helpers, "get_smtp_config", lambda: None)
    with pytest.raises(email_helpers.EmailNotConfiguredError):
        email_helpers.send_email("a@example.com", "Hi", "<p>Hi</p>")
