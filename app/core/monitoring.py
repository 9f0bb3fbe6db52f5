import logging

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration

from app.core.config import settings

logger = logging.getLogger(__name__)

_initialized = False


def init_monitoring() -> None:
    """Initialise Sentry once per process when SENTRY_DSN is configured."""
    global _initialized
    if _initialized:
        return
    _initialized = True
    if not settings.SENTRY_DSN:
        return
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration(), CeleryIntegration()],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.0,
            environment=settings.ENV,
            release=f"policyvault-backend@{settings.ENV}",
            send_default_pii=False,
        )
        logger.info("Sentry initialized")
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to init Sentry: %s", exc)
