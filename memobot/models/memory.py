"""Memories, tags and the relationship graph between memories."""

from __future__ import annotations

import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from memobot.db import Base
from memobot.models.mixins import SoftDeleteMixin, TimestampMixin

EMBEDDING_DIMENSIONS = 512

RELATIONSHIP_AUTO = "auto"
RELATIONSHIP_MANUAL = "manual"
MANUAL_RELATIONSHIP_SCORE = 1.0


class Memory(Base, TimestampMixin, SoftDeleteMixin):
    """A captured piece of user content. Owned exclusively by user_id."""

    __tablename__ = "memories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(512), nullable=True)
    content = Column(Text, nullable=False)
    summary = Column(Text, nullable=True)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=True)
    category_id = Column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    source_platform = Column(String(32), nullable=False, default="chat")
    is_forwarded = Column(Boolean, nullable=False, default=False)
    occurred_at = Column(DateTime(timezone=True), nullable=True)

    tags = relationship(
        "Tag", secondary="memory_tags", lazy="selectin", viewonly=True
    )
    category = relationship("Category", lazy="selectin")


class Tag(Base, TimestampMixin):
    """User-scoped label. usage_count tracks the number of tagged memories."""

    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tags_user_name"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(128), nullable=False)
    normalized_name = Column(String(128), nullable=False, index=True)
    usage_count = Column(Integer, nullable=False, default=0)


class MemoryTag(Base):
    __tablename__ = "memory_tags"

    memory_id = Column(
        UUID(as_uuid=True),
        ForeignKey("memories.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag_id = Column(
        UUID(as_uuid=True),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )


class MemoryRelationship(Base, TimestampMixin):
    """
    Undirected edge between two memories of the same user.

    Stored canonically with memory_a_id < memory_b_id so an unordered pair has
    at most one row.
    """

    __tablename__ = "memory_relationships"
    __table_args__ = (
        UniqueConstraint(
            "memory_a_id", "memory_b_id", name="uq_memory_relationships_pair"
        ),
        CheckConstraint(
            "memory_a_id < memory_b_id", name="ck_memory_relationships_canonical"
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    memory_a_id = Column(
        UUID(as_uuid=True),
        ForeignKey("memories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    memory_b_id = Column(
        UUID(as_uuid=True),
        ForeignKey("memories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    relationship_type = Column(String(16), nullable=False, default=RELATIONSHIP_AUTO)
    similarity_score = Column(Float, nullable=False)
