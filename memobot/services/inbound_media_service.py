"""
Resolve media messages into text before they reach the orchestrator.

Voice is downloaded and transcribed; images, documents and videos are uploaded
to the attachment service and folded into the message text, with the user's
caption taking priority over any extracted preview.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from memobot.adapters.base import BasePlatformAdapter
from memobot.collaborators.attachments import AttachmentStore
from memobot.collaborators.transcription import Transcriber
from memobot.config import Settings, get_settings
from memobot.core.errors import TransientDependencyFailure, ValidationFailure
from memobot.schemas.messages import InboundMessage, MessageKind
from memobot.utils.timeouts import call_with_timeout

logger = logging.getLogger(__name__)

_KIND_LABELS = {
    MessageKind.IMAGE: "image",
    MessageKind.DOCUMENT: "document",
    MessageKind.VIDEO: "video",
}


def compose_attachment_text(
    kind: MessageKind,
    caption: Optional[str],
    file_name: Optional[str],
    extracted: Optional[str],
    preview_length: int,
) -> str:
    label = _KIND_LABELS.get(kind, "file")
    lines = []
    if caption and caption.strip():
        lines.append(caption.strip())
    else:
        lines.append(f"Shared {label}" + (f" '{file_name}'" if file_name else ""))
    if extracted and extracted.strip():
        preview = " ".join(extracted.split())
        if len(preview) > preview_length:
            preview = preview[:preview_length].rstrip() + "..."
        lines.append(f"[{label} content: {preview}]")
    return "\n".join(lines)


class InboundMediaService:
    def __init__(
        self,
        transcriber: Optional[Transcriber] = None,
        attachments: Optional[AttachmentStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.transcriber = transcriber
        self.attachments = attachments
        self.settings = settings or get_settings()

    async def resolve(
        self,
        msg: InboundMessage,
        user_id: UUID,
        adapter: Optional[BasePlatformAdapter],
    ) -> InboundMessage:
        """Return a copy of ``msg`` whose text is usable by the orchestrator."""
        if msg.kind not in _KIND_LABELS and msg.kind != MessageKind.VOICE:
            return msg
        if msg.media_ref is None:
            raise ValidationFailure(f"{msg.kind.value} message without media reference")
        if adapter is None:
            raise TransientDependencyFailure(f"No adapter to fetch {msg.channel.value} media")
        timeout = self.settings.provider_call_timeout_seconds
        data = await call_with_timeout(
            adapter.fetch_media(msg.media_ref), timeout, "media download"
        )
        if msg.kind == MessageKind.VOICE:
            return await self._transcribe(msg, data)
        return await self._upload(msg, user_id, data)

    async def _transcribe(self, msg: InboundMessage, data: bytes) -> InboundMessage:
        if self.transcriber is None:
            raise TransientDependencyFailure(
                "Transcription not configured",
                user_message="Voice messages aren't supported right now.",
            )
        result = await call_with_timeout(
            self.transcriber.transcribe(data, msg.media_ref.mime_type),
            self.settings.provider_call_timeout_seconds,
            "transcription",
        )
        if not result.success:
            logger.info("Transcription failed for %s: %s", msg.external_message_id, result.error)
            raise TransientDependencyFailure(
                f"Transcription failed: {result.error}", user_message=result.error
            )
        return msg.with_text(result.text)

    async def _upload(
        self, msg: InboundMessage, user_id: UUID, data: bytes
    ) -> InboundMessage:
        if self.attachments is None:
            raise TransientDependencyFailure(
                "Attachment service not configured",
                user_message="I can't store files right now. Please send text instead.",
            )
        ref = msg.media_ref
        uploaded = await call_with_timeout(
            self.attachments.upload(user_id, data, ref.mime_type, ref.file_name),
            self.settings.provider_call_timeout_seconds,
            "attachment upload",
        )
        text = compose_attachment_text(
            msg.kind,
            msg.caption,
            ref.file_name,
            uploaded.extracted_content,
            self.settings.context_preview_length,
        )
        return msg.with_text(text, attachment_ids=[*msg.attachment_ids, uploaded.id])
