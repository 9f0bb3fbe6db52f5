"""Day-boundary helpers for the billing reference timezone.

Expiry and schedule comparisons happen at day granularity in
``SWEEP_TIMEZONE``; stored timestamps are UTC.
"""
from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

from app.core.config import settings


def reference_tz() -> ZoneInfo:
    return ZoneInfo(settings.SWEEP_TIMEZONE)


def reference_today(now: dt.datetime | None = None) -> dt.date:
    now = now or dt.datetime.now(dt.timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    return now.astimezone(reference_tz()).date()


def day_bounds_utc(day: dt.date) -> tuple[dt.datetime, dt.datetime]:
    """Return [start, end) of ``day`` in the reference timezone, as UTC datetimes."""
    tz = reference_tz()
    start = dt.datetime.combine(day, dt.time.min, tzinfo=tz)
    end = dt.datetime.combine(day + dt.timedelta(days=1), dt.time.min, tzinfo=tz)
    return start.astimezone(dt.timezone.utc), end.astimezone(dt.timezone.utc)
