"""Durable per-user, per-channel dialogue state."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from memobot.db import Base
from memobot.models.mixins import SoftDeleteMixin, TimestampMixin

MODE_RECALL = "recall"
MODE_CREATE = "create"


class ConversationState(Base, TimestampMixin, SoftDeleteMixin):
    """
    One live row per (user, channel). Expired or reset rows are soft-deleted
    and kept as history.
    """

    __tablename__ = "conversation_states"
    __table_args__ = (
        Index(
            "uq_conversation_states_live",
            "user_id",
            "channel",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel = Column(String(32), nullable=False)
    external_user_id = Column(String(255), nullable=True)
    message_history = Column(JSONB, nullable=False, default=list)
    mode = Column(String(16), nullable=False, default=MODE_RECALL)
    # {"parts": [...], "attachment_ids": [...], "is_forwarded": bool}
    draft = Column(JSONB, nullable=True)
    pending_questions = Column(JSONB, nullable=False, default=list)
    last_memory_id = Column(UUID(as_uuid=True), nullable=True)
    last_message_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
