from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from memobot.db import Base
from memobot.models.mixins import TimestampMixin

REMINDER_PENDING = "pending"
REMINDER_SENT = "sent"
REMINDER_FAILED = "failed"
REMINDER_CANCELLED = "cancelled"


class Reminder(Base, TimestampMixin):
    """Time-based reminder attached to a memory. Editable only while pending."""

    __tablename__ = "reminders"
    __table_args__ = (
        Index("ix_reminders_status_remind_at", "status", "remind_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    memory_id = Column(
        UUID(as_uuid=True),
        ForeignKey("memories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(512), nullable=False)
    summary = Column(Text, nullable=True)
    remind_at = Column(DateTime(timezone=True), nullable=False)
    channels = Column(JSONB, nullable=False, default=lambda: ["email"])
    status = Column(String(16), nullable=False, default=REMINDER_PENDING)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)

    memory = relationship("Memory", lazy="joined")
