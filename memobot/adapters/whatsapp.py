"""
WhatsApp Cloud API adapter.

Webhook deliveries are signed with HMAC-SHA256 over the raw body
(``X-Hub-Signature-256: sha256=<hex>``). Media is fetched in two steps: the
media id resolves to a short-lived URL, which is then downloaded with the same
bearer token.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import httpx

from memobot.adapters.base import BasePlatformAdapter, get_header
from memobot.adapters.buttons import button_text
from memobot.core.errors import TransientDependencyFailure, ValidationFailure
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

SIGNATURE_HEADER = "X-Hub-Signature-256"
WHATSAPP_OBJECT = "whatsapp_business_account"
MAX_BODY_LENGTH = 1024

_MEDIA_KINDS = {
    "audio": MessageKind.VOICE,
    "voice": MessageKind.VOICE,
    "image": MessageKind.IMAGE,
    "document": MessageKind.DOCUMENT,
    "video": MessageKind.VIDEO,
}


class WhatsAppAdapter(BasePlatformAdapter):
    channel = Channel.WHATSAPP
    max_buttons = 3
    max_button_title = 20

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        app_secret: Optional[str] = None,
        verify_token: Optional[str] = None,
        graph_api_url: str = "https://graph.facebook.com/v21.0",
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._app_secret = app_secret
        self._verify_token = verify_token
        self._graph_api_url = graph_api_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def verify_subscription(
        self, mode: Optional[str], token: Optional[str], challenge: Optional[str]
    ) -> Optional[str]:
        """Webhook registration handshake. Returns the challenge to echo, or None."""
        if mode != "subscribe" or not self._verify_token or token is None:
            return None
        if not hmac.compare_digest(token.encode(), self._verify_token.encode()):
            return None
        return challenge or ""

    def verify_webhook(
        self, raw_body: bytes, request_headers: Optional[Mapping[str, str]] = None
    ) -> bool:
        if not self._app_secret:
            return True
        signature = get_header(request_headers, SIGNATURE_HEADER)
        if not signature or not signature.startswith("sha256="):
            return False
        expected = hmac.new(
            self._app_secret.encode(), raw_body, hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(signature[len("sha256=") :], expected)

    def parse_webhook(self, raw_payload: dict[str, Any]) -> list[InboundMessage]:
        if raw_payload.get("object") != WHATSAPP_OBJECT:
            raise ValidationFailure("Not a WhatsApp Business webhook")
        messages: list[InboundMessage] = []
        for entry in raw_payload.get("entry") or []:
            for change in entry.get("changes") or []:
                if change.get("field") != "messages":
                    continue
                value = change.get("value") or {}
                names = {
                    c.get("wa_id"): (c.get("profile") or {}).get("name")
                    for c in value.get("contacts") or []
                }
                for raw in value.get("messages") or []:
                    parsed = self._parse_message(raw, names)
                    if parsed is not None:
                        messages.append(parsed)
        return messages

    def _parse_message(
        self, raw: Mapping[str, Any], names: Mapping[str, Optional[str]]
    ) -> Optional[InboundMessage]:
        sender = raw.get("from")
        msg_type = raw.get("type")
        if not sender or not msg_type:
            raise ValidationFailure("WhatsApp message missing sender or type")
        context = raw.get("context") or {}
        forwarded = bool(context.get("forwarded") or context.get("frequently_forwarded"))
        timestamp = datetime.now(timezone.utc)
        if str(raw.get("timestamp", "")).isdigit():
            timestamp = datetime.fromtimestamp(int(raw["timestamp"]), tz=timezone.utc)
        base: dict[str, Any] = {
            "channel": Channel.WHATSAPP,
            "external_user_id": sender,
            "external_message_id": raw.get("id"),
            "is_forwarded": forwarded,
            "metadata": MessageMetadata(
                timestamp=timestamp, display_name=names.get(sender)
            ),
        }

        if msg_type == "text":
            body = (raw.get("text") or {}).get("body") or ""
            kind = MessageKind.FORWARDED if forwarded else MessageKind.TEXT
            return InboundMessage(kind=kind, text=body, **base)

        if msg_type == "interactive":
            interactive = raw.get("interactive") or {}
            reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
            button_id = reply.get("id")
            if not button_id:
                raise ValidationFailure("WhatsApp interactive message without reply id")
            return InboundMessage(
                kind=MessageKind.BUTTON,
                text=button_text(button_id),
                button_id=button_id,
                **base,
            )

        if msg_type == "button":
            payload = raw.get("button") or {}
            button_id = payload.get("payload") or payload.get("text")
            return InboundMessage(
                kind=MessageKind.BUTTON,
                text=button_text(button_id),
                button_id=button_id,
                **base,
            )

        if msg_type in _MEDIA_KINDS:
            media = raw.get(msg_type) or {}
            if not media.get("id"):
                raise ValidationFailure(f"WhatsApp {msg_type} message without media id")
            return InboundMessage(
                kind=_MEDIA_KINDS[msg_type],
                caption=media.get("caption"),
                media_ref=MediaRef(
                    file_id=media["id"],
                    mime_type=media.get("mime_type"),
                    file_name=media.get("filename"),
                ),
                **base,
            )

        logger.info("Skipping unsupported WhatsApp message type: %s", msg_type)
        return None

    async def fetch_media(self, media_ref: MediaRef) -> bytes:
        client = self._client()
        try:
            info = await client.get(
                f"{self._graph_api_url}/{media_ref.file_id}",
                headers=self._auth_headers,
            )
            info.raise_for_status()
            url = info.json().get("url")
            if not url:
                raise TransientDependencyFailure("WhatsApp media info has no url")
            download = await client.get(url, headers=self._auth_headers)
            download.raise_for_status()
        except httpx.HTTPError as e:
            raise TransientDependencyFailure(f"WhatsApp media download failed: {e}") from e
        return download.content

    def build_payload(self, outbound: OutboundMessage) -> dict[str, Any]:
        to = re.sub(r"\D", "", outbound.external_user_id)
        payload: dict[str, Any] = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
        }
        buttons = self.clip_buttons(outbound)
        if buttons:
            payload["type"] = "interactive"
            payload["interactive"] = {
                "type": "button",
                "body": {"text": outbound.text[:MAX_BODY_LENGTH]},
                "action": {
                    "buttons": [
                        {"type": "reply", "reply": {"id": bid, "title": title}}
                        for bid, title in buttons
                    ]
                },
            }
        else:
            payload["type"] = "text"
            payload["text"] = {"preview_url": False, "body": outbound.text}
        if outbound.reply_to_message_id:
            payload["context"] = {"message_id": outbound.reply_to_message_id}
        return payload

    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        if outbound.channel != Channel.WHATSAPP:
            return OutboundSendResult(success=False, error="wrong channel")
        try:
            response = await self._client().post(
                f"{self._graph_api_url}/{self._phone_number_id}/messages",
                headers=self._auth_headers,
                json=self.build_payload(outbound),
            )
        except httpx.HTTPError as e:
            logger.warning("WhatsApp send failed: %s", e)
            return OutboundSendResult(success=False, error=str(e))
        if response.status_code >= 400:
            logger.warning(
                "WhatsApp API error %s: %s", response.status_code, response.text
            )
            return OutboundSendResult(
                success=False, error=f"HTTP {response.status_code}"
            )
        sent = (response.json().get("messages") or [{}])[0]
        return OutboundSendResult(success=True, platform_message_id=sent.get("id"))
