"""
Shared webhook flow for messaging providers.

Authenticate the raw body, parse it into InboundMessages, drop redeliveries,
apply the optional rate limit and hand each message to the session chain of
its (channel, external user). The provider always gets a quick 200 once the
request itself is authentic.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import HTTPException, Request

from memobot.adapters.base import BasePlatformAdapter
from memobot.core.app_state import AppState
from memobot.core.errors import ValidationFailure
from memobot.core.session_key import build_session_key
from memobot.schemas.messages import Channel, InboundMessage
from memobot.utils.rate_limit import check_rate_limit

SLOW_DOWN_MESSAGE = "You're sending messages a bit fast. Please wait a moment and try again."


class BaseWebhookCommand:
    channel: Channel

    def __init__(self, app_state: AppState) -> None:
        self.state = app_state
        self.settings = app_state.settings
        self.logger = logging.getLogger(__name__)

    def get_adapter(self) -> BasePlatformAdapter | None:
        """Return the configured adapter or None if the channel is disabled."""
        return self.state.registry.get(self.channel)

    async def execute(self, request: Request) -> dict[str, str]:
        """
        Execute the webhook: authenticate, parse, dedup, enqueue.

        Returns:
            dict: {"status": "ok"}, or {"status": "ignored"} for payloads that
                could not be parsed (acknowledged so the provider stops retrying).

        Raises:
            HTTPException: 503 if the channel is disabled, 403 on a bad signature.
        """
        adapter = self.get_adapter()
        if adapter is None:
            raise HTTPException(
                status_code=503,
                detail=f"{self.channel.value.title()} integration is not configured or disabled",
            )
        raw_body = await request.body()
        if not adapter.verify_webhook(raw_body, dict(request.headers)):
            raise HTTPException(status_code=403, detail="Invalid webhook signature")
        try:
            payload: Any = json.loads(raw_body or b"null")
            if not isinstance(payload, dict):
                raise ValidationFailure("Body must be a JSON object")
            messages = adapter.parse_webhook(payload)
        except (ValueError, ValidationFailure) as e:
            self.logger.warning("%s webhook ignored: %s", self.channel.value, e)
            return {"status": "ignored"}

        futures = [f for f in (self._dispatch(msg) for msg in messages) if f is not None]
        if futures:
            _, pending = await asyncio.wait(
                futures, timeout=self.settings.webhook_processing_timeout_seconds
            )
            if pending:
                self.logger.warning(
                    "%d %s message(s) still processing after acknowledging the webhook",
                    len(pending),
                    self.channel.value,
                )
        return {"status": "ok"}

    def _dispatch(self, msg: InboundMessage) -> asyncio.Future | None:
        if self.state.dedup.seen(msg.channel.value, msg.external_message_id):
            self.logger.info(
                "Duplicate %s message %s dropped", msg.channel.value, msg.external_message_id
            )
            return None
        key = build_session_key(msg)
        router = self.state.router
        if not check_rate_limit(
            msg.channel.value,
            msg.external_user_id,
            self.state.redis_client,
            self.settings.rate_limit_per_user_per_minute,
        ):
            self.logger.info("Rate limited %s", key)
            return self.state.serializer.enqueue(
                key, lambda: router.reply_only(msg, SLOW_DOWN_MESSAGE)
            )
        return self.state.serializer.enqueue(key, lambda: router.handle(msg))
