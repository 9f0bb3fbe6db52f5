"""
Subscription Tasks.

Celery task wrapping the nightly sweep: downgrade lapsed subscriptions,
send expiry reminders, dispatch due notifications.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.db.session import session_scope
from app.services.sweep_service import SubscriptionSweep
from app.workers.celery_app import SWEEP_TASK, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name=SWEEP_TASK)
def run_nightly_sweep() -> dict[str, Any]:
    """Run all three sweep passes once and return the per-pass summary.

    No autoretry: a rerun would resend reminders that already went out.
    Per-record failures are reported in the summary instead.
    """
    with session_scope() as db:
        report = asyncio.run(SubscriptionSweep(db).run())
    summary = report.summary()
    logger.info("Nightly sweep complete: %s", summary)
    return summary
