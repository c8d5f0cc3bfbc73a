"""
Redis connection helper
Shared by components that keep counters in Redis when it is configured
"""
import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)


def get_redis_client(redis_url: Optional[str]) -> Optional[redis.Redis]:
    """
    Connect to Redis at `redis_url`

    Returns:
        Redis client, or None when no URL is set or the server is unreachable
    """
    if not redis_url:
        return None

    try:
        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )
        client.ping()
        logger.info("Redis connection established")
        return client
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        return None
