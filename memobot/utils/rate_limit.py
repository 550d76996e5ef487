"""
Optional rate limiting per (channel, external user id).

Fixed one-minute window in Redis, enabled when RATE_LIMIT_PER_USER_PER_MINUTE
is set. Without a limit or a Redis client, every message is allowed.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


def check_rate_limit(
    channel: str,
    external_user_id: str,
    redis_client: Optional[redis.Redis],
    limit_per_minute: Optional[int],
) -> bool:
    """
    Check if the (channel, external_user_id) is within rate limit.
    Returns True if allowed, False if rate limited.
    """
    if redis_client is None or limit_per_minute is None or limit_per_minute <= 0:
        return True
    key = f"memobot:ratelimit:{channel}:{external_user_id}"
    try:
        pipe = redis_client.pipeline()
        pipe.incr(key)
        pipe.expire(key, WINDOW_SECONDS, nx=True)
        results = pipe.execute()
        count = results[0] if results else 0
        return count <= limit_per_minute
    except redis.RedisError as e:
        logger.warning("Rate limit check failed, allowing request: %s", e)
        return True
