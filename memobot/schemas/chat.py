"""Chat API request/response."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from memobot.schemas.memory import MemoryRead, RetrievedMemoryRead
from memobot.schemas.messages import QuickReplyButton


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=8000)
    attachment_refs: List[str] = Field(default_factory=list, alias="attachmentRefs")

    model_config = {"populate_by_name": True}


class ChatResponse(BaseModel):
    """Serialized with camelCase keys: reply, retrievedMemories, createdMemory, buttons."""

    reply: str
    retrieved_memories: List[RetrievedMemoryRead] = Field(
        default_factory=list, alias="retrievedMemories"
    )
    created_memory: Optional[MemoryRead] = Field(default=None, alias="createdMemory")
    buttons: List[QuickReplyButton] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "serialize_by_alias": True}
