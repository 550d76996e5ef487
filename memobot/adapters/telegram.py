"""
Telegram platform adapter.

Uses python-telegram-bot for parsing webhook updates, downloading files and
sending messages.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, Message, Update
from telegram.error import BadRequest, TelegramError

from memobot.adapters.base import BasePlatformAdapter, FormattingRejected, get_header
from memobot.adapters.buttons import button_text
from memobot.core.errors import ValidationFailure
from memobot.schemas.messages import (
    Channel,
    InboundMessage,
    MediaRef,
    MessageKind,
    MessageMetadata,
    OutboundMessage,
    OutboundSendResult,
)

logger = logging.getLogger(__name__)

FORWARD_KEYS = (
    "forward_origin",
    "forward_from",
    "forward_from_chat",
    "forward_date",
    "forward_sender_name",
)


def _is_forwarded(raw_message: Mapping[str, Any]) -> bool:
    return any(raw_message.get(key) for key in FORWARD_KEYS)


def _message_timestamp(msg: Message) -> datetime:
    ts = msg.date
    if ts is None:
        return datetime.now(timezone.utc)
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


class TelegramAdapter(BasePlatformAdapter):
    """Telegram adapter: parse webhook updates, fetch files, send via Bot API."""

    TELEGRAM_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

    channel = Channel.TELEGRAM
    max_button_title = 64

    def __init__(self, bot_token: str, webhook_secret: Optional[str] = None) -> None:
        self._bot_token = bot_token
        self._webhook_secret = webhook_secret
        self._bot: Optional[Bot] = None

    def _get_bot(self) -> Bot:
        if self._bot is None:
            self._bot = Bot(token=self._bot_token)
        return self._bot

    def verify_webhook(
        self, raw_body: bytes, request_headers: Optional[Mapping[str, str]] = None
    ) -> bool:
        """Validate X-Telegram-Bot-Api-Secret-Token if a webhook secret is configured."""
        if not self._webhook_secret:
            return True
        actual = get_header(request_headers, self.TELEGRAM_SECRET_HEADER)
        if actual is None:
            return False
        return hmac.compare_digest(actual.encode(), self._webhook_secret.encode())

    def parse_webhook(self, raw_payload: dict[str, Any]) -> list[InboundMessage]:
        """Parse a Telegram update into zero or one normalized inbound message."""
        try:
            update = Update.de_json(raw_payload, self._get_bot())
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationFailure(f"Invalid Telegram update: {e}") from e
        if update is None:
            raise ValidationFailure("Invalid Telegram update: de_json returned None")
        if update.callback_query is not None:
            return [self._parse_callback(update)]
        if update.message is None:
            # edited messages, member updates, etc.
            return []
        return [self._parse_message(update.message, raw_payload.get("message") or {})]

    def _parse_callback(self, update: Update) -> InboundMessage:
        query = update.callback_query
        if query.from_user is None:
            raise ValidationFailure("Telegram callback query has no sender")
        chat_id = (
            str(query.message.chat.id)
            if query.message is not None
            else str(query.from_user.id)
        )
        return InboundMessage(
            channel=Channel.TELEGRAM,
            external_user_id=str(query.from_user.id),
            external_message_id=f"callback:{query.id}",
            kind=MessageKind.BUTTON,
            text=button_text(query.data),
            button_id=query.data,
            metadata=MessageMetadata(
                locale=query.from_user.language_code,
                timestamp=datetime.now(timezone.utc),
                reply_address=chat_id,
                display_name=query.from_user.first_name,
            ),
        )

    def _parse_message(
        self, msg: Message, raw_message: Mapping[str, Any]
    ) -> InboundMessage:
        from_user = msg.from_user
        chat_id = str(msg.chat_id) if msg.chat_id else ""
        user_id = str(from_user.id) if from_user else chat_id
        if not user_id:
            raise ValidationFailure("Telegram message has no sender")
        forwarded = _is_forwarded(raw_message)
        kind, media_ref = self._classify(msg)
        text = msg.text or ""
        if kind == MessageKind.TEXT:
            if not text.strip():
                raise ValidationFailure("Unsupported Telegram message type")
            if forwarded:
                kind = MessageKind.FORWARDED
        metadata = MessageMetadata(
            locale=from_user.language_code if from_user else None,
            timestamp=_message_timestamp(msg),
            reply_address=chat_id or user_id,
            display_name=from_user.first_name if from_user else None,
        )
        return InboundMessage(
            channel=Channel.TELEGRAM,
            external_user_id=user_id,
            external_message_id=str(msg.message_id) if msg.message_id else None,
            kind=kind,
            text=text,
            caption=msg.caption,
            media_ref=media_ref,
            is_forwarded=forwarded,
            metadata=metadata,
        )

    @staticmethod
    def _classify(msg: Message) -> tuple[MessageKind, Optional[MediaRef]]:
        if msg.voice:
            return MessageKind.VOICE, MediaRef(
                file_id=msg.voice.file_id,
                mime_type=msg.voice.mime_type or "audio/ogg",
                file_size=msg.voice.file_size,
            )
        if msg.audio:
            return MessageKind.VOICE, MediaRef(
                file_id=msg.audio.file_id,
                mime_type=msg.audio.mime_type or "audio/mpeg",
                file_name=msg.audio.file_name,
                file_size=msg.audio.file_size,
            )
        if msg.photo:
            largest = msg.photo[-1]
            return MessageKind.IMAGE, MediaRef(
                file_id=largest.file_id,
                mime_type="image/jpeg",
                file_size=largest.file_size,
            )
        if msg.video or msg.video_note:
            video = msg.video or msg.video_note
            return MessageKind.VIDEO, MediaRef(
                file_id=video.file_id,
                mime_type=getattr(video, "mime_type", None) or "video/mp4",
                file_size=video.file_size,
            )
        if msg.document:
            return MessageKind.DOCUMENT, MediaRef(
                file_id=msg.document.file_id,
                mime_type=msg.document.mime_type,
                file_name=msg.document.file_name,
                file_size=msg.document.file_size,
            )
        return MessageKind.TEXT, None

    async def fetch_media(self, media_ref: MediaRef) -> bytes:
        """getFile for the download path, then download the bytes."""
        tg_file = await self._get_bot().get_file(media_ref.file_id)
        data = await tg_file.download_as_bytearray()
        return bytes(data)

    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Send message via Telegram Bot API. chat_id = external_user_id."""
        if outbound.channel != Channel.TELEGRAM:
            return OutboundSendResult(success=False, error="wrong channel")

        send_kw: dict[str, Any] = {
            "chat_id": outbound.external_user_id,
            "text": outbound.text,
        }
        if outbound.reply_to_message_id and outbound.reply_to_message_id.isdigit():
            send_kw["reply_to_message_id"] = int(outbound.reply_to_message_id)
        if outbound.parse_mode:
            send_kw["parse_mode"] = outbound.parse_mode
        buttons = self.clip_buttons(outbound)
        if buttons:
            send_kw["reply_markup"] = InlineKeyboardMarkup(
                [
                    [InlineKeyboardButton(title, callback_data=bid[:64])]
                    for bid, title in buttons
                ]
            )
        try:
            sent = await self._get_bot().send_message(**send_kw)
        except BadRequest as e:
            if outbound.parse_mode and "parse entities" in str(e).lower():
                raise FormattingRejected(str(e)) from e
            logger.warning("Telegram rejected message: %s", e)
            return OutboundSendResult(success=False, error=str(e))
        except TelegramError as e:
            logger.warning("Telegram send failed: %s", e)
            return OutboundSendResult(success=False, error=str(e))
        return OutboundSendResult(
            success=True,
            platform_message_id=(
                str(sent.message_id) if sent and sent.message_id else None
            ),
        )
