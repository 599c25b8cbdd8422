"""Rate limiting for the Appointly API."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from appointly.core.config import settings

logger = logging.getLogger(__name__)

# Redis keeps limits shared across workers; memory is the fallback
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

# The cron trigger is called hourly; anything beyond this is abuse
CRON_RATE_LIMIT = "30/minute"


def _build_limiter() -> Limiter:
    if IS_TESTING:
        return Limiter(key_func=get_remote_address, storage_uri="memory://", default_limits=DEFAULT_LIMITS)

    try:
        import redis

        client = redis.from_url(REDIS_URL, socket_connect_timeout=1)
        client.ping()
        return Limiter(key_func=get_remote_address, storage_uri=REDIS_URL, default_limits=DEFAULT_LIMITS)
    except Exception as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return Limiter(key_func=get_remote_address, storage_uri="memory://", default_limits=DEFAULT_LIMITS)


limiter = _build_limiter()
