"""Command to handle Telegram webhook updates (X-Telegram-Bot-Api-Secret-Token)."""

from __future__ import annotations

from memobot.commands.webhooks.base_webhook_command import BaseWebhookCommand
from memobot.schemas.messages import Channel


class TelegramWebhookCommand(BaseWebhookCommand):
    channel = Channel.TELEGRAM
