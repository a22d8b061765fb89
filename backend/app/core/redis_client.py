"""
Redis client initialization and connection management.

Redis backs the token blacklist used for logout and user deactivation.
"""

import logging
import redis.asyncio as redis
from backend.app.core.config import settings

logger = logging.getLogger("transportpro.redis")


# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return bool(await redis_client.ping())
    except Exception as e:
        logger.warning("Redis ping failed: %s", e)
        return False
