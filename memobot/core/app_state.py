from __future__ import annotations

from typing import Optional

import redis

from memobot.config import Settings, get_settings
from memobot.core.dedup import build_dedup_cache
from memobot.core.registry import AdapterRegistry, build_adapter_registry
from memobot.core.routing import Router, build_router_from_env
from memobot.core.session_queue import SessionSerializer


class AppState:
    """Process-wide collaborators shared by the webhook and chat entry points."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.registry: AdapterRegistry = build_adapter_registry(self.settings)
        self.serializer = SessionSerializer()
        self._redis: Optional[redis.Redis] = None
        self._router: Optional[Router] = None
        self.dedup = build_dedup_cache(
            self.settings,
            self.redis_client if self.settings.dedup_backend == "redis" else None,
        )

    @property
    def redis_client(self) -> Optional[redis.Redis]:
        if self._redis is None and self.settings.redis_host:
            self._redis = redis.Redis.from_url(self.settings.redis_url)
        return self._redis

    @property
    def router(self) -> Router:
        if self._router is None:
            self._router = build_router_from_env(self.registry)
        return self._router

    @router.setter
    def router(self, value: Router) -> None:
        self._router = value


state = AppState()
