"""
Command to handle WhatsApp Cloud API webhooks.

POST deliveries go through the shared webhook flow; the GET subscription
handshake echoes ``hub.challenge`` when the verify token matches.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException

from memobot.adapters.whatsapp import WhatsAppAdapter
from memobot.commands.webhooks.base_webhook_command import BaseWebhookCommand
from memobot.schemas.messages import Channel


class WhatsAppWebhookCommand(BaseWebhookCommand):
    channel = Channel.WHATSAPP

    def verify_subscription(
        self, mode: Optional[str], token: Optional[str], challenge: Optional[str]
    ) -> str:
        adapter = self.get_adapter()
        if not isinstance(adapter, WhatsAppAdapter):
            raise HTTPException(
                status_code=503,
                detail="Whatsapp integration is not configured or disabled",
            )
        echoed = adapter.verify_subscription(mode, token, challenge)
        if echoed is None:
            raise HTTPException(status_code=403, detail="Verification failed")
        return echoed
