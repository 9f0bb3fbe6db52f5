import logging

import jwt
from prometheus_client import Counter
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.config import settings
from app.core.redis_utils import prepare_redis_url

logger = logging.getLogger(__name__)

_PROM_RATE_LIMIT = Counter("policyvault_rate_limit_exceeded_events", "Rate limit exceeded events (handler invocations)")

# Checkout endpoints talk to the payment provider; keep them well below provider quotas
PAYMENT_RATE_LIMIT = "10/minute"


def get_user_identifier(request: Request) -> str:
    """Rate-limit key: client IP plus the token subject when one is present.

    The token is only peeked at (no signature check); authentication happens
    in the endpoint dependencies.
    """
    ip_address = get_remote_address(request)
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        try:
            claims = jwt.decode(auth_header[7:], options={"verify_signature": False})
            return f"{ip_address}:{claims.get('sub', 'anon')}"
        except jwt.InvalidTokenError:
            pass
    return ip_address


def _storage_uri() -> str:
    if settings.ENV.lower() != "prod" or not settings.REDIS_URL:
        logger.info("Rate limiter using in-memory storage (dev/test mode)")
        return "memory://"
    return prepare_redis_url(settings.REDIS_URL) or "memory://"


limiter = Limiter(key_func=get_user_identifier, storage_uri=_storage_uri(), headers_enabled=False)


def increment_rate_limit_exceeded() -> None:
    _PROM_RATE_LIMIT.inc()
