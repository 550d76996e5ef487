"""Tests for WhatsAppAdapter."""

import hashlib
import hmac
import json

import httpx
import pytest

from memobot.adapters.buttons import CANCEL, NEW_MEMORY, SAVE_MEMORY, button
from memobot.adapters.whatsapp import WhatsAppAdapter
from memobot.core.errors import TransientDependencyFailure, ValidationFailure
from memobot.schemas.messages import Channel, MediaRef, MessageKind, OutboundMessage

APP_SECRET = "app-secret"


def whatsapp_payload(*messages, statuses=None):
    value = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "15550000000", "phone_number_id": "PNID"},
        "contacts": [{"wa_id": "15551234567", "profile": {"name": "Sam"}}],
        "messages": list(messages),
    }
    if statuses is not None:
        value = {"statuses": statuses}
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA", "changes": [{"field": "messages", "value": value}]}],
    }


def text_message(body="hello", message_id="wamid.1", **extra):
    message = {
        "from": "15551234567",
        "id": message_id,
        "timestamp": "1609459200",
        "type": "text",
        "text": {"body": body},
    }
    message.update(extra)
    return message


def signature(body: bytes) -> str:
    return "sha256=" + hmac.new(APP_SECRET.encode(), body, hashlib.sha256).hexdigest()


def make_adapter(handler=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler)) if handler else None
    return WhatsAppAdapter(
        access_token="token",
        phone_number_id="PNID",
        app_secret=APP_SECRET,
        verify_token="verify-me",
        graph_api_url="https://graph.test/v21.0",
        http_client=client,
    )


def test_verify_webhook_signature():
    adapter = make_adapter()
    body = json.dumps(whatsapp_payload(text_message())).encode()
    assert adapter.verify_webhook(body, {"x-hub-signature-256": signature(body)})
    assert not adapter.verify_webhook(body, {"x-hub-signature-256": signature(b"other")})
    assert not adapter.verify_webhook(body, {})


def test_verify_webhook_without_secret_accepts_everything():
    adapter = WhatsAppAdapter(access_token="t", phone_number_id="p")
    assert adapter.verify_webhook(b"{}", {})


def test_verify_subscription():
    adapter = make_adapter()
    assert adapter.verify_subscription("subscribe", "verify-me", "challenge-1") == "challenge-1"
    assert adapter.verify_subscription("subscribe", "wrong", "challenge-1") is None
    assert adapter.verify_subscription("unsubscribe", "verify-me", "challenge-1") is None


def test_parse_text_message():
    [msg] = make_adapter().parse_webhook(whatsapp_payload(text_message()))
    assert msg.channel == Channel.WHATSAPP
    assert msg.external_user_id == "15551234567"
    assert msg.external_message_id == "wamid.1"
    assert msg.kind == MessageKind.TEXT
    assert msg.text == "hello"
    assert msg.metadata.display_name == "Sam"
    assert msg.metadata.timestamp.year == 2021


def test_parse_forwarded_text():
    payload = whatsapp_payload(text_message(context={"forwarded": True}))
    [msg] = make_adapter().parse_webhook(payload)
    assert msg.kind == MessageKind.FORWARDED
    assert msg.is_forwarded is True


def test_parse_button_reply():
    interactive = {
        "from": "15551234567",
        "id": "wamid.2",
        "type": "interactive",
        "interactive": {
            "type": "button_reply",
            "button_reply": {"id": SAVE_MEMORY, "title": "Save it"},
        },
    }
    [msg] = make_adapter().parse_webhook(whatsapp_payload(interactive))
    assert msg.kind == MessageKind.BUTTON
    assert msg.button_id == SAVE_MEMORY
    assert msg.text == "Save it"


def test_parse_image_message():
    image = {
        "from": "15551234567",
        "id": "wamid.3",
        "type": "image",
        "image": {"id": "media-1", "mime_type": "image/jpeg", "caption": "Parking spot"},
    }
    [msg] = make_adapter().parse_webhook(whatsapp_payload(image))
    assert msg.kind == MessageKind.IMAGE
    assert msg.media_ref.file_id == "media-1"
    assert msg.caption == "Parking spot"


def test_status_callbacks_yield_nothing():
    payload = whatsapp_payload(statuses=[{"id": "wamid.1", "status": "delivered"}])
    assert make_adapter().parse_webhook(payload) == []


def test_unsupported_types_are_skipped():
    sticker = {"from": "15551234567", "id": "wamid.4", "type": "sticker", "sticker": {}}
    assert make_adapter().parse_webhook(whatsapp_payload(sticker)) == []


def test_foreign_payload_is_rejected():
    with pytest.raises(ValidationFailure):
        make_adapter().parse_webhook({"object": "page", "entry": []})


def test_build_payload_clips_buttons():
    adapter = make_adapter()
    outbound = OutboundMessage(
        channel=Channel.WHATSAPP,
        external_user_id="+1 555 123 4567",
        text="Saved",
        buttons=[
            button(SAVE_MEMORY),
            button(NEW_MEMORY),
            button(CANCEL),
            button("extra_button_beyond_limit"),
        ],
    )
    payload = adapter.build_payload(outbound)
    assert payload["to"] == "15551234567"
    assert payload["type"] == "interactive"
    buttons = payload["interactive"]["action"]["buttons"]
    assert len(buttons) == 3
    assert all(len(b["reply"]["title"]) <= 20 for b in buttons)


def test_build_payload_plain_text():
    outbound = OutboundMessage(channel=Channel.WHATSAPP, external_user_id="1555", text="hi")
    payload = make_adapter().build_payload(outbound)
    assert payload["type"] == "text"
    assert payload["text"]["body"] == "hi"


@pytest.mark.asyncio
async def test_send_posts_to_messages_endpoint():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"messages": [{"id": "wamid.out"}]})

    outbound = OutboundMessage(channel=Channel.WHATSAPP, external_user_id="1555", text="hi")
    result = await make_adapter(handler).send(outbound)

    assert result.success is True
    assert result.platform_message_id == "wamid.out"
    assert seen["url"] == "https://graph.test/v21.0/PNID/messages"
    assert seen["auth"] == "Bearer token"


@pytest.mark.asyncio
async def test_send_reports_http_errors():
    adapter = make_adapter(lambda request: httpx.Response(400, json={"error": {}}))
    outbound = OutboundMessage(channel=Channel.WHATSAPP, external_user_id="1555", text="hi")
    result = await adapter.send(outbound)
    assert result.success is False
    assert result.error == "HTTP 400"


@pytest.mark.asyncio
async def test_fetch_media_resolves_url_then_downloads():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/media-1"):
            return httpx.Response(200, json={"url": "https://cdn.test/file"})
        return httpx.Response(200, content=b"image-bytes")

    data = await make_adapter(handler).fetch_media(MediaRef(file_id="media-1"))
    assert data == b"image-bytes"


@pytest.mark.asyncio
async def test_fetch_media_failure_is_transient():
    adapter = make_adapter(lambda request: httpx.Response(500))
    with pytest.raises(TransientDependencyFailure):
        await adapter.fetch_media(MediaRef(file_id="media-1"))
