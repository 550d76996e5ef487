"""
Platform adapter interface.

Adapters encapsulate provider-specific logic: webhook authentication, payload
normalization into InboundMessage, media download, and reply delivery.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from memobot.schemas.messages import (
    Channel,
    InboundMessage,
    MediaRef,
    OutboundMessage,
    OutboundSendResult,
)


class FormattingRejected(Exception):
    """Provider refused a formatted message because its markup did not parse."""


def get_header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    """Case-insensitive header lookup (Starlette lowercases header names)."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class BasePlatformAdapter(ABC):
    """Contract for platform adapters. New platforms implement this interface."""

    channel: Channel
    max_buttons: int = 3
    max_button_title: int = 20

    @abstractmethod
    def parse_webhook(self, raw_payload: dict[str, Any]) -> list[InboundMessage]:
        """
        Parse a raw webhook payload into normalized inbound messages.

        Returns an empty list for deliveries that carry no user message (status
        callbacks). Raises ValidationFailure for malformed payloads.
        """
        ...

    @abstractmethod
    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Send via the platform API. Raises FormattingRejected on markup errors."""
        ...

    @abstractmethod
    async def fetch_media(self, media_ref: MediaRef) -> bytes:
        """Resolve a provider media handle to raw bytes."""
        ...

    def verify_webhook(
        self, raw_body: bytes, request_headers: Optional[Mapping[str, str]] = None
    ) -> bool:
        """
        Verify webhook authenticity. Override if the platform supports it.
        Return True if valid or verification not configured; False to reject.
        """
        return True

    def clip_buttons(self, outbound: OutboundMessage) -> list[tuple[str, str]]:
        return [
            (b.id, b.title[: self.max_button_title])
            for b in outbound.buttons[: self.max_buttons]
        ]
