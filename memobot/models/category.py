from __future__ import annotations

import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from memobot.db import Base
from memobot.models.memory import EMBEDDING_DIMENSIONS
from memobot.models.mixins import TimestampMixin

DEFAULT_CATEGORY_NAME = "Personal"


class Category(Base, TimestampMixin):
    """
    User-scoped bucket every new memory is filed into.

    The name embedding lets new memories reuse an existing category when they
    are close enough to it, instead of minting near-duplicates.
    """

    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_categories_user_name"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(64), nullable=False)
    description = Column(Text, nullable=True)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=True)
    memory_count = Column(Integer, nullable=False, default=0)
