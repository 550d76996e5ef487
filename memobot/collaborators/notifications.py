"""
Notification collaborator used by the reminder scheduler.

Email goes through the Resend HTTP API; messaging channels go through the same
platform adapters that answer webhooks. Every send reports a per-channel result
instead of raising.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx
from telegram.helpers import escape_markdown

from memobot.adapters.base import FormattingRejected
from memobot.core.registry import AdapterRegistry
from memobot.schemas.messages import Channel, OutboundMessage

logger = logging.getLogger(__name__)

EMAIL_CHANNEL = "email"
RESEND_API_URL = "https://api.resend.com/emails"


@dataclass
class ReminderNotice:
    reminder_title: str
    remind_at: datetime
    memory_title: str
    memory_url: str
    reminder_summary: Optional[str] = None
    memory_summary: Optional[str] = None


@dataclass
class NotificationResult:
    channel: str
    success: bool
    error: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {"channel": self.channel, "success": self.success, "error": self.error}


def _format_when(value: datetime) -> str:
    return value.strftime("%A, %B %d, %Y at %H:%M UTC")


def render_email_html(notice: ReminderNotice) -> str:
    parts = [
        "<h1>MemoBot reminder</h1>",
        f"<p>{html.escape(_format_when(notice.remind_at))}</p>",
        f"<h2>{html.escape(notice.reminder_title)}</h2>",
    ]
    if notice.reminder_summary:
        parts.append(f"<p><em>{html.escape(notice.reminder_summary)}</em></p>")
    parts.append(f"<h3>Linked memory: {html.escape(notice.memory_title)}</h3>")
    if notice.memory_summary:
        parts.append(f"<p>{html.escape(notice.memory_summary)}</p>")
    parts.append(
        f'<p><a href="{html.escape(notice.memory_url, quote=True)}">View memory</a></p>'
    )
    return "\n".join(parts)


def render_chat_text(notice: ReminderNotice, markdown: bool) -> str:
    def fmt(value: str) -> str:
        return escape_markdown(value, version=1) if markdown else value

    title = f"*{fmt(notice.reminder_title)}*" if markdown else notice.reminder_title
    lines = [f"Reminder: {title}"]
    if notice.reminder_summary:
        lines.append(fmt(notice.reminder_summary))
    lines.append(f"Memory: {fmt(notice.memory_title)}")
    lines.append(notice.memory_url)
    return "\n".join(lines)


class ResendEmailSender:
    def __init__(
        self,
        api_key: str,
        from_address: str,
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._from_address = from_address
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def send(self, to: str, notice: ReminderNotice) -> NotificationResult:
        payload = {
            "from": f"MemoBot <{self._from_address}>",
            "to": [to],
            "subject": f"Reminder: {notice.reminder_title}",
            "html": render_email_html(notice),
            "text": render_chat_text(notice, markdown=False),
        }
        try:
            response = await self._client.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=payload,
            )
        except httpx.HTTPError as e:
            return NotificationResult(EMAIL_CHANNEL, False, str(e))
        if response.status_code >= 400:
            return NotificationResult(
                EMAIL_CHANNEL, False, f"Resend HTTP {response.status_code}"
            )
        return NotificationResult(EMAIL_CHANNEL, True)


class NotificationDispatcher:
    def __init__(
        self,
        registry: AdapterRegistry,
        email_sender: Optional[ResendEmailSender] = None,
    ) -> None:
        self._registry = registry
        self._email_sender = email_sender

    async def send(
        self, channel: str, recipient_ref: Optional[str], notice: ReminderNotice
    ) -> NotificationResult:
        """Deliver one notice on one channel. Never raises."""
        if not recipient_ref:
            return NotificationResult(channel, False, "No recipient for channel")
        try:
            if channel == EMAIL_CHANNEL:
                if self._email_sender is None:
                    return NotificationResult(channel, False, "Email not configured")
                return await self._email_sender.send(recipient_ref, notice)
            return await self._send_chat(Channel(channel), recipient_ref, notice)
        except ValueError:
            return NotificationResult(channel, False, f"Unknown channel {channel}")
        except Exception as e:
            logger.exception("Notification on %s failed", channel)
            return NotificationResult(channel, False, str(e))

    async def _send_chat(
        self, channel: Channel, recipient_ref: str, notice: ReminderNotice
    ) -> NotificationResult:
        adapter = self._registry.get(channel)
        if adapter is None:
            return NotificationResult(channel.value, False, "Channel not enabled")
        markdown = channel == Channel.TELEGRAM
        outbound = OutboundMessage(
            channel=channel,
            external_user_id=recipient_ref,
            text=render_chat_text(notice, markdown=markdown),
            parse_mode="Markdown" if markdown else None,
        )
        try:
            result = await adapter.send(outbound)
        except FormattingRejected:
            result = await adapter.send(
                outbound.model_copy(
                    update={
                        "parse_mode": None,
                        "text": render_chat_text(notice, markdown=False),
                    }
                )
            )
        return NotificationResult(channel.value, result.success, result.error)
