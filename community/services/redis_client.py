"""Redis client for state shared across workers and sessions."""

import os
import redis
import logging

logger = logging.getLogger(__name__)

# Redis connection (lazy initialization)
_redis_client = None


def get_redis():
    """Get or create Redis connection. Returns None when Redis is unavailable."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_url = os.environ.get('REDIS_URL')

    if not redis_url:
        logger.warning("REDIS_URL not set - persistent client cache falls back to memory")
        return None

    try:
        _redis_client = redis.from_url(redis_url, decode_responses=True)
        # Test connection
        _redis_client.ping()
        logger.info("Redis connected successfully")
        return _redis_client
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        _redis_client = None
        return None


def reset_redis():
    """Drop the cached connection (used when REDIS_URL changes)."""
    global _redis_client
    _redis_client = None
