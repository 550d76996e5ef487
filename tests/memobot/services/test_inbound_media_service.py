"""Tests for InboundMediaService."""

import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fixtures.router_fixtures import stub_adapter

from memobot.collaborators.attachments import UploadedAttachment
from memobot.collaborators.transcription import TranscriptionResult
from memobot.core.errors import TransientDependencyFailure, ValidationFailure
from memobot.schemas.messages import Channel, InboundMessage, MediaRef, MessageKind
from memobot.services.inbound_media_service import (
    InboundMediaService,
    compose_attachment_text,
)

USER_ID = uuid.uuid4()


def media_message(kind, caption=None, file_name=None):
    return InboundMessage(
        channel=Channel.TELEGRAM,
        external_user_id="789",
        external_message_id="456",
        kind=kind,
        caption=caption,
        media_ref=MediaRef(file_id="file-1", mime_type="audio/ogg", file_name=file_name),
    )


def test_caption_takes_priority_over_file_name():
    text = compose_attachment_text(
        MessageKind.IMAGE, "My parking spot", "IMG_001.jpg", "Level 3 B12", 220
    )
    assert text == "My parking spot\n[image content: Level 3 B12]"


def test_file_name_used_without_caption():
    text = compose_attachment_text(MessageKind.DOCUMENT, None, "lease.pdf", None, 220)
    assert text == "Shared document 'lease.pdf'"


def test_extracted_preview_is_truncated():
    text = compose_attachment_text(MessageKind.DOCUMENT, "Lease", None, "word " * 100, 20)
    assert text.endswith("...]")
    assert len(text.splitlines()[1]) < 60


@pytest.mark.asyncio
async def test_text_messages_pass_through(test_settings):
    msg = InboundMessage(channel=Channel.CHAT, external_user_id="u", text="hi")
    assert await InboundMediaService(settings=test_settings).resolve(msg, USER_ID, None) is msg


@pytest.mark.asyncio
async def test_voice_is_transcribed(test_settings):
    transcriber = MagicMock()
    transcriber.transcribe = AsyncMock(
        return_value=TranscriptionResult(True, text="Remember the milk")
    )
    adapter = stub_adapter(media=b"ogg-bytes")
    service = InboundMediaService(transcriber, settings=test_settings)

    resolved = await service.resolve(media_message(MessageKind.VOICE), USER_ID, adapter)

    assert resolved.text == "Remember the milk"
    assert resolved.kind == MessageKind.VOICE
    transcriber.transcribe.assert_awaited_once_with(b"ogg-bytes", "audio/ogg")


@pytest.mark.asyncio
async def test_failed_transcription_carries_a_user_message(test_settings):
    transcriber = MagicMock()
    transcriber.transcribe = AsyncMock(
        return_value=TranscriptionResult(False, error="I couldn't hear anything in that voice message.")
    )
    service = InboundMediaService(transcriber, settings=test_settings)

    with pytest.raises(TransientDependencyFailure) as exc:
        await service.resolve(media_message(MessageKind.VOICE), USER_ID, stub_adapter())

    assert exc.value.user_message == "I couldn't hear anything in that voice message."


@pytest.mark.asyncio
async def test_image_is_uploaded_and_described(test_settings):
    attachments = MagicMock()
    attachments.upload = AsyncMock(
        return_value=UploadedAttachment(id="att-9", extracted_content="Level 3, spot B12")
    )
    service = InboundMediaService(attachments=attachments, settings=test_settings)

    resolved = await service.resolve(
        media_message(MessageKind.IMAGE, caption="Where I parked"), USER_ID, stub_adapter()
    )

    assert resolved.text == "Where I parked\n[image content: Level 3, spot B12]"
    assert resolved.attachment_ids == ["att-9"]


@pytest.mark.asyncio
async def test_missing_media_reference(test_settings):
    msg = InboundMessage(channel=Channel.TELEGRAM, external_user_id="789", kind=MessageKind.IMAGE)
    with pytest.raises(ValidationFailure):
        await InboundMediaService(settings=test_settings).resolve(msg, USER_ID, stub_adapter())


@pytest.mark.asyncio
async def test_slow_download_times_out(test_settings):
    test_settings.provider_call_timeout_seconds = 0.01
    adapter = stub_adapter()

    async def never_finishes(ref):
        await asyncio.sleep(1)

    adapter.fetch_media = never_finishes
    service = InboundMediaService(settings=test_settings)
    with pytest.raises(TransientDependencyFailure):
        await service.resolve(media_message(MessageKind.VOICE), USER_ID, adapter)
