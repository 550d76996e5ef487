"""Message log rows, one per inbound or outbound message."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from memobot.db import Base
from memobot.models.mixins import TimestampMixin

DIRECTION_INBOUND = "inbound"
DIRECTION_OUTBOUND = "outbound"


class ConversationEvent(Base, TimestampMixin):
    __tablename__ = "conversation_events"

    __table_args__ = (
        Index(
            "ix_conversation_events_channel_external_user_created",
            "channel",
            "external_user_id",
            "created_at",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    direction = Column(String(16), nullable=False)
    channel = Column(String(32), nullable=False)
    external_user_id = Column(String(255), nullable=False)
    message_id = Column(String(255), nullable=True)
    kind = Column(String(16), nullable=True)
    text = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSONB, nullable=True, default=dict)
    platform_message_id = Column(String(255), nullable=True)
