"""
Memory persistence.

Embeddings (the memory's, and the name of a new category) are computed before
anything is written, so a failed embedding call leaves no partial memory, tag,
category or relationship rows behind.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from memobot.collaborators.embedding import Embedder
from memobot.config import Settings, get_settings
from memobot.core.errors import NotFound, ValidationFailure
from memobot.models.memory import Memory
from memobot.search.base import SearchBackend
from memobot.services.category_service import CategoryService
from memobot.services.relationship_service import RelationshipService
from memobot.services.tag_service import TagService
from memobot.utils.time import utcnow

logger = logging.getLogger(__name__)


def embedding_text(
    content: str, title: Optional[str] = None, summary: Optional[str] = None
) -> str:
    return "\n".join(part for part in (title, summary, content) if part)


class MemoryService:
    def __init__(
        self,
        db: Session,
        embedder: Embedder,
        backend: Optional[SearchBackend] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.embedder = embedder
        self.settings = settings or get_settings()
        self.relationships = RelationshipService(db, backend=backend, settings=self.settings)
        self.tags = TagService(db)
        self.categories = CategoryService(db, embedder, settings=self.settings)

    def get_memory(self, user_id: UUID, memory_id: UUID) -> Memory:
        memory = (
            self.db.query(Memory)
            .filter(
                Memory.id == memory_id,
                Memory.user_id == user_id,
                Memory.deleted_at.is_(None),
            )
            .first()
        )
        if memory is None:
            raise NotFound(f"Memory {memory_id} not found")
        return memory

    def get_memories(self, user_id: UUID, memory_ids: Sequence[UUID]) -> List[Memory]:
        """Live memories for the given ids, in the given order."""
        if not memory_ids:
            return []
        rows = (
            self.db.query(Memory)
            .filter(
                Memory.id.in_(list(memory_ids)),
                Memory.user_id == user_id,
                Memory.deleted_at.is_(None),
            )
            .all()
        )
        by_id = {m.id: m for m in rows}
        return [by_id[mid] for mid in memory_ids if mid in by_id]

    def list_memories(self, user_id: UUID, limit: int = 50) -> List[Memory]:
        return (
            self.db.query(Memory)
            .filter(Memory.user_id == user_id, Memory.deleted_at.is_(None))
            .order_by(Memory.created_at.desc())
            .limit(limit)
            .all()
        )

    async def create_memory(
        self,
        user_id: UUID,
        content: str,
        title: Optional[str] = None,
        summary: Optional[str] = None,
        tags: Iterable[str] = (),
        source_platform: str = "chat",
        is_forwarded: bool = False,
        occurred_at: Optional[datetime] = None,
        category: Optional[str] = None,
        commit: bool = True,
    ) -> Memory:
        """
        Embed, then store the memory with its tags, category and relationships.

        With ``commit=False`` the rows are only flushed so the caller can finish
        related work (attachment linking) inside the same transaction.
        """
        if not content or not content.strip():
            raise ValidationFailure(
                "Memory content is empty",
                user_message="There's nothing to save yet.",
            )
        embedding = await self.embedder.embed(embedding_text(content, title, summary))
        filed_under = None
        if category is not None:
            filed_under = await self.categories.assign(user_id, embedding, category)

        memory = Memory(
            user_id=user_id,
            title=title,
            content=content.strip(),
            summary=summary,
            embedding=embedding,
            source_platform=source_platform,
            is_forwarded=is_forwarded,
            occurred_at=occurred_at,
            category=filed_under,
        )
        self.db.add(memory)
        self.db.flush()
        self.tags.attach_tags(memory, tags, commit=False)
        candidates = self.relationships.find_related(user_id, memory.id, embedding)
        self.relationships.upsert_relationships(
            user_id, memory.id, candidates, commit=False
        )
        if commit:
            self.db.commit()
            self.db.refresh(memory)
        logger.info(
            "Created memory %s for user %s with %d related",
            memory.id,
            user_id,
            len(candidates),
        )
        return memory

    async def update_memory(
        self,
        user_id: UUID,
        memory_id: UUID,
        content: Optional[str] = None,
        title: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Memory:
        """Update text fields; re-embeds and refreshes auto relationships on change."""
        memory = self.get_memory(user_id, memory_id)
        new_content = content if content is not None else memory.content
        new_title = title if title is not None else memory.title
        new_summary = summary if summary is not None else memory.summary
        changed = (new_content, new_title, new_summary) != (
            memory.content,
            memory.title,
            memory.summary,
        )
        if not changed:
            return memory
        embedding = await self.embedder.embed(
            embedding_text(new_content, new_title, new_summary)
        )
        memory.content = new_content
        memory.title = new_title
        memory.summary = new_summary
        memory.embedding = embedding
        self.db.flush()
        candidates = self.relationships.find_related(user_id, memory.id, embedding)
        self.relationships.upsert_relationships(
            user_id, memory.id, candidates, commit=False
        )
        self.db.commit()
        self.db.refresh(memory)
        return memory

    def soft_delete(self, user_id: UUID, memory_id: UUID) -> Memory:
        memory = self.get_memory(user_id, memory_id)
        memory.deleted_at = utcnow()
        self.tags.detach_all(memory, commit=False)
        self.categories.release(memory)
        self.db.commit()
        return memory
