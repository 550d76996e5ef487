"""
Normalized message contracts.

All inbound provider payloads are converted into InboundMessage; replies use
OutboundMessage. Downstream code never sees provider-specific shapes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Channel(str, Enum):
    """Supported conversation channels."""

    CHAT = "chat"
    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"


# Channels where the bot can message the user directly (reminders, replies).
DIRECT_REPLY_CHANNELS = frozenset({Channel.TELEGRAM, Channel.WHATSAPP})


class MessageKind(str, Enum):
    TEXT = "text"
    VOICE = "voice"
    IMAGE = "image"
    DOCUMENT = "document"
    VIDEO = "video"
    BUTTON = "button"
    FORWARDED = "forwarded"


MEDIA_KINDS = frozenset(
    {MessageKind.VOICE, MessageKind.IMAGE, MessageKind.DOCUMENT, MessageKind.VIDEO}
)


class MediaRef(BaseModel):
    """Opaque provider handle for raw media bytes."""

    file_id: str
    mime_type: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None


class MessageMetadata(BaseModel):
    """Metadata for normalized messages (locale, timestamp, reply address)."""

    locale: Optional[str] = None
    timestamp: Optional[datetime] = None
    # Where replies go when it differs from the sender (e.g. Telegram group chat id).
    reply_address: Optional[str] = None
    display_name: Optional[str] = None


class InboundMessage(BaseModel):
    """Normalized inbound message (adapter -> core). Immutable once built."""

    model_config = ConfigDict(frozen=True)

    channel: Channel
    external_user_id: str
    external_message_id: Optional[str] = None
    kind: MessageKind = MessageKind.TEXT
    text: str = ""
    caption: Optional[str] = None
    media_ref: Optional[MediaRef] = None
    button_id: Optional[str] = None
    is_forwarded: bool = False
    attachment_ids: list[str] = Field(default_factory=list)
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)

    @property
    def reply_address(self) -> str:
        return self.metadata.reply_address or self.external_user_id

    def with_text(self, text: str, **changes: Any) -> "InboundMessage":
        """Copy with resolved text (transcript, attachment preview)."""
        return self.model_copy(update={"text": text, **changes})


class QuickReplyButton(BaseModel):
    id: str
    title: str


class OutboundMessage(BaseModel):
    """Normalized outbound message (core -> adapter)."""

    channel: Channel
    external_user_id: str  # Telegram chat id, WhatsApp phone number, account id for chat
    text: str
    reply_to_message_id: Optional[str] = None
    buttons: list[QuickReplyButton] = Field(default_factory=list)
    parse_mode: Optional[str] = None


class OutboundSendResult(BaseModel):
    """Result of sending an outbound message (success + optional message_id)."""

    success: bool
    platform_message_id: Optional[str] = None
    error: Optional[str] = None
