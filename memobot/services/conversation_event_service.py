"""
Append-only log of every message the bot receives or sends.

Rows are written once and never edited. The log is for support and
debugging; conversation state used by the assistant lives in
ConversationState.
"""

from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy.orm import Session

from memobot.models.conversation_event import (
    DIRECTION_INBOUND,
    DIRECTION_OUTBOUND,
    ConversationEvent,
)
from memobot.schemas.messages import InboundMessage, OutboundMessage


def inbound_details(msg: InboundMessage) -> dict[str, Any]:
    details = msg.metadata.model_dump(mode="json", exclude_none=True)
    if msg.button_id:
        details["button_id"] = msg.button_id
    if msg.is_forwarded:
        details["is_forwarded"] = True
    if msg.attachment_ids:
        details["attachment_ids"] = list(msg.attachment_ids)
    return details


class ConversationEventService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _append(self, **fields: Any) -> ConversationEvent:
        event = ConversationEvent(**fields)
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def record_inbound(self, msg: InboundMessage) -> ConversationEvent:
        return self._append(
            direction=DIRECTION_INBOUND,
            channel=msg.channel.value,
            external_user_id=msg.external_user_id,
            message_id=msg.external_message_id,
            kind=msg.kind.value,
            text=msg.text or msg.caption or None,
            metadata_=inbound_details(msg),
        )

    def record_outbound(
        self, msg: OutboundMessage, platform_message_id: Optional[str] = None
    ) -> ConversationEvent:
        """Log a delivered reply; ``message_id`` points at the message it answers."""
        return self._append(
            direction=DIRECTION_OUTBOUND,
            channel=msg.channel.value,
            external_user_id=msg.external_user_id,
            message_id=msg.reply_to_message_id,
            kind="text",
            text=msg.text or None,
            metadata_={"buttons": [b.model_dump() for b in msg.buttons]},
            platform_message_id=platform_message_id,
        )

    def transcript(
        self, channel: str, external_user_id: str, limit: int = 50
    ) -> List[ConversationEvent]:
        """The latest ``limit`` events for one sender, oldest first."""
        newest = (
            self.db.query(ConversationEvent)
            .filter(
                ConversationEvent.channel == channel,
                ConversationEvent.external_user_id == external_user_id,
            )
            .order_by(ConversationEvent.created_at.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(newest))
