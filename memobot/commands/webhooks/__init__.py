"""Webhook command handlers."""

from memobot.commands.webhooks.base_webhook_command import BaseWebhookCommand
from memobot.commands.webhooks.telegram_command import TelegramWebhookCommand
from memobot.commands.webhooks.whatsapp_command import WhatsAppWebhookCommand

__all__ = ["BaseWebhookCommand", "TelegramWebhookCommand", "WhatsAppWebhookCommand"]
