from __future__ import annotations

from typing import Dict, Optional

from memobot.adapters.base import BasePlatformAdapter
from memobot.adapters.telegram import TelegramAdapter
from memobot.adapters.whatsapp import WhatsAppAdapter
from memobot.config import Settings, get_settings
from memobot.schemas.messages import Channel


class AdapterRegistry:
    def __init__(self) -> None:
        self._adapters: Dict[Channel, BasePlatformAdapter] = {}

    def register(self, adapter: BasePlatformAdapter) -> None:
        if adapter.channel in self._adapters:
            raise ValueError(f"Adapter already registered: {adapter.channel.value}")
        self._adapters[adapter.channel] = adapter

    def get(self, channel: Channel) -> BasePlatformAdapter | None:
        return self._adapters.get(channel)

    def list_channels(self) -> list[Channel]:
        return list(self._adapters)


def build_adapter_registry(settings: Optional[Settings] = None) -> AdapterRegistry:
    """Build the registry from config. Only enabled and configured channels are included."""
    settings = settings or get_settings()
    registry = AdapterRegistry()
    if settings.telegram_enabled and settings.telegram_bot_token:
        registry.register(
            TelegramAdapter(
                bot_token=settings.telegram_bot_token,
                webhook_secret=settings.telegram_webhook_secret,
            )
        )
    if (
        settings.whatsapp_enabled
        and settings.whatsapp_access_token
        and settings.whatsapp_phone_number_id
    ):
        registry.register(
            WhatsAppAdapter(
                access_token=settings.whatsapp_access_token,
                phone_number_id=settings.whatsapp_phone_number_id,
                app_secret=settings.whatsapp_app_secret,
                verify_token=settings.whatsapp_verify_token,
                graph_api_url=settings.whatsapp_graph_api_url,
                timeout=settings.provider_call_timeout_seconds,
            )
        )
    return registry
