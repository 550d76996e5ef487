"""Users and their links to external messaging accounts."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from memobot.db import Base
from memobot.models.mixins import SoftDeleteMixin, TimestampMixin


class User(Base, TimestampMixin, SoftDeleteMixin):
    """Account owner. Identity itself is managed by the upstream auth provider."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=True, index=True)
    display_name = Column(String(256), nullable=True)
    timezone = Column(String(64), nullable=True)

    platform_links = relationship(
        "PlatformLink", back_populates="user", cascade="all, delete-orphan"
    )


class PlatformLink(Base, TimestampMixin):
    """Binds an external (channel, user id) to an account. One account per external id."""

    __tablename__ = "platform_links"
    __table_args__ = (
        UniqueConstraint(
            "channel", "external_user_id", name="uq_platform_links_channel_external"
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
    external_user_id = Column(String(255), nullable=False)
    # Chat id to deliver reminders to; equals external_user_id for private chats.
    delivery_address = Column(String(255), nullable=True)

    user = relationship("User", back_populates="platform_links")


class LinkCode(Base, TimestampMixin):
    """Short-lived 6-digit code a user sends as `LINK <code>` from a messaging app."""

    __tablename__ = "link_codes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = Column(String(6), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
