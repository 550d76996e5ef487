"""
Attachment collaborator.

Uploads media bytes to the attachment service, which stores the file and
returns any text it could extract (OCR, document text).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence
from uuid import UUID

import httpx

from memobot.core.errors import TransientDependencyFailure, ValidationFailure

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024


@dataclass
class UploadedAttachment:
    id: str
    extracted_content: Optional[str] = None


class AttachmentStore(Protocol):
    async def upload(
        self,
        user_id: UUID,
        data: bytes,
        mime_type: Optional[str],
        file_name: Optional[str],
    ) -> UploadedAttachment: ...

    async def link_to_memory(
        self, user_id: UUID, attachment_ids: Sequence[str], memory_id: UUID
    ) -> None: ...


class HttpAttachmentStore:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout
        )

    async def upload(
        self,
        user_id: UUID,
        data: bytes,
        mime_type: Optional[str],
        file_name: Optional[str],
    ) -> UploadedAttachment:
        if len(data) > MAX_ATTACHMENT_BYTES:
            raise ValidationFailure(
                "Attachment too large",
                user_message="That file is too large. The limit is 10 MB.",
            )
        files = {
            "file": (
                file_name or "upload",
                data,
                mime_type or "application/octet-stream",
            )
        }
        try:
            response = await self._client.post(
                "/attachments", data={"user_id": str(user_id)}, files=files
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Attachment upload failed: %s", e)
            raise TransientDependencyFailure(f"Attachment upload failed: {e}") from e
        body = response.json()
        return UploadedAttachment(
            id=str(body["id"]), extracted_content=body.get("extracted_content")
        )

    async def link_to_memory(
        self, user_id: UUID, attachment_ids: Sequence[str], memory_id: UUID
    ) -> None:
        if not attachment_ids:
            return
        try:
            response = await self._client.post(
                f"/memories/{memory_id}/attachments",
                json={"user_id": str(user_id), "attachment_ids": list(attachment_ids)},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransientDependencyFailure(f"Attachment link failed: {e}") from e
