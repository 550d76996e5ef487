"""
Command for the first-party chat channel.

Chat shares the session chain with every other channel, so a chat message is
serialized behind any in-flight work for the same account before its reply is
returned in the HTTP response.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException

from memobot.core.app_state import AppState
from memobot.core.errors import GENERIC_APOLOGY
from memobot.core.routing import RouterOutcome
from memobot.core.session_key import build_session_key
from memobot.models.user import User
from memobot.schemas.chat import ChatRequest, ChatResponse
from memobot.schemas.memory import MemoryRead, RetrievedMemoryRead
from memobot.schemas.messages import Channel, InboundMessage, MessageMetadata
from memobot.utils.time import utcnow

logger = logging.getLogger(__name__)


class ChatCommand:
    def __init__(self, app_state: AppState) -> None:
        self.state = app_state

    async def execute(self, user: User, body: ChatRequest) -> ChatResponse:
        msg = InboundMessage(
            channel=Channel.CHAT,
            external_user_id=str(user.id),
            external_message_id=str(uuid4()),
            text=body.message,
            attachment_ids=list(body.attachment_refs),
            metadata=MessageMetadata(timestamp=utcnow(), display_name=user.display_name),
        )
        outcome: Optional[RouterOutcome] = None
        router = self.state.router

        async def run() -> None:
            nonlocal outcome
            outcome = await router.handle(msg)

        await self.state.serializer.enqueue(build_session_key(msg), run)
        if outcome is None:
            raise HTTPException(status_code=500, detail=GENERIC_APOLOGY)
        result = outcome.result
        return ChatResponse(
            reply=outcome.outbound.text,
            retrieved_memories=[
                RetrievedMemoryRead.model_validate(r)
                for r in (result.retrieved_memories if result else [])
            ],
            created_memory=(
                MemoryRead.model_validate(result.created_memory)
                if result and result.created_memory
                else None
            ),
            buttons=outcome.outbound.buttons,
        )
