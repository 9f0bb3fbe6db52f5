"""Celery app for the nightly subscription sweep.

Run the worker with an embedded beat (``policyvault-worker``) so the sweep
fires once per day at midnight in SWEEP_TIMEZONE.
"""
from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from app.core.config import settings
from app.core.redis_utils import get_ssl_options, prepare_redis_url

SWEEP_TASK = "subscriptions.run_nightly_sweep"
SWEEP_QUEUE = "sweeps"


def _create_celery() -> Celery:
    redis_url = prepare_redis_url(settings.REDIS_URL)
    is_test = settings.ENV.lower() == "test"
    celery = Celery("policyvault", broker=redis_url, backend=redis_url, include=["app.workers.tasks"])
    celery.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone=settings.SWEEP_TIMEZONE,
        enable_utc=True,
        task_default_queue="default",
        task_routes={SWEEP_TASK: {"queue": SWEEP_QUEUE}},
        # One sweep at a time per worker process; a sweep can hold its slot for minutes
        worker_prefetch_multiplier=1,
        task_time_limit=60 * 30,
        result_expires=60 * 60 * 24 * 7,
        task_always_eager=is_test,
    )
    ssl_options = get_ssl_options()
    if ssl_options:
        celery.conf.update(broker_use_ssl=ssl_options, redis_backend_use_ssl=ssl_options)
    if not is_test:
        celery.conf.beat_schedule = {
            "nightly-subscription-sweep": {
                "task": SWEEP_TASK,
                "schedule": crontab(minute=0, hour=0),
                "options": {"queue": SWEEP_QUEUE},
            }
        }
    return celery


celery_app = _create_celery()
