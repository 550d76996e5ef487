"""Time-bounded record of already-processed inbound message ids."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

import redis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


class DedupCache:
    """
    Process-local dedup keyed by (channel, external message id).

    ``seen`` sweeps expired entries on every call, so no background thread is
    needed. Entries are lost on restart.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def seen(self, channel: str, external_message_id: Optional[str]) -> bool:
        """True if the id was recorded within the TTL; otherwise record it and return False."""
        if not external_message_id:
            return False
        now = self._clock()
        key = (channel, external_message_id)
        with self._lock:
            self._sweep(now)
            if key in self._entries:
                return True
            self._entries[key] = now
            return False

    def _sweep(self, now: float) -> None:
        cutoff = now - self._ttl
        expired = [k for k, first_seen in self._entries.items() if first_seen <= cutoff]
        for k in expired:
            del self._entries[k]

    def __len__(self) -> int:
        return len(self._entries)


class RedisDedupCache:
    """Shared dedup for multi-instance deployments using SET NX EX."""

    def __init__(self, redis_client, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        self._redis = redis_client
        self._ttl = int(ttl_seconds)

    def seen(self, channel: str, external_message_id: Optional[str]) -> bool:
        if not external_message_id:
            return False
        key = f"memobot:dedup:{channel}:{external_message_id}"
        try:
            created = self._redis.set(key, "1", nx=True, ex=self._ttl)
        except redis.RedisError as e:
            # A cache miss means "process it".
            logger.warning("Dedup check failed, processing message: %s", e)
            return False
        return not created


def build_dedup_cache(settings, redis_client=None):
    """Process-local cache unless DEDUP_BACKEND=redis and a client is available."""
    if settings.dedup_backend == "redis" and redis_client is not None:
        return RedisDedupCache(redis_client, settings.dedup_ttl_seconds)
    return DedupCache(settings.dedup_ttl_seconds)
