"""
Shared Redis client for readiness checks against the Celery broker.
"""
import logging

import redis
from redis.connection import ConnectionPool

from app.core.config import settings
from app.core.redis_utils import prepare_redis_url

logger = logging.getLogger(__name__)

_pool: ConnectionPool | None = None


def get_redis_client() -> redis.Redis:
    """Return a client on a small shared pool; the broker connections belong to Celery."""
    global _pool
    if _pool is None:
        redis_url = prepare_redis_url(settings.REDIS_URL)
        if not redis_url:
            raise RuntimeError("REDIS_URL is not configured")
        _pool = ConnectionPool.from_url(
            redis_url,
            max_connections=2,
            socket_timeout=2,
            socket_connect_timeout=2,
            decode_responses=True,
        )
        logger.info("Redis connection pool created for health checks")
    return redis.Redis(connection_pool=_pool)


def close_redis_pool() -> None:
    """Close the Redis connection pool. Called on app shutdown."""
    global _pool
    if _pool is not None:
        _pool.disconnect()
        _pool = None
        logger.info("Redis pool closed")
