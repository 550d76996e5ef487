"""
Webhook routes for inbound chat platform updates.

Platforms POST raw updates here; we authenticate, hand messages to the session
chain and return 200. Webhooks are authenticated by provider signatures, not by
the user header.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from memobot.commands.webhooks import TelegramWebhookCommand, WhatsAppWebhookCommand
from memobot.core.app_state import AppState
from memobot.routers.utils.dependencies import get_app_state

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/telegram")
async def telegram_webhook(
    request: Request,
    app_state: AppState = Depends(get_app_state),
) -> dict[str, str]:
    """Receive Telegram updates. Validates X-Telegram-Bot-Api-Secret-Token when configured."""
    return await TelegramWebhookCommand(app_state).execute(request)


@router.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    app_state: AppState = Depends(get_app_state),
) -> dict[str, str]:
    """Receive WhatsApp Cloud API deliveries. Validates X-Hub-Signature-256 when configured."""
    return await WhatsAppWebhookCommand(app_state).execute(request)


@router.get("/whatsapp", response_class=PlainTextResponse)
def whatsapp_verify(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    app_state: AppState = Depends(get_app_state),
) -> str:
    """Subscription handshake: echo hub.challenge when the verify token matches."""
    return WhatsAppWebhookCommand(app_state).verify_subscription(mode, token, challenge)
