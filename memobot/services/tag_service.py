"""Tag lookup and memory-tag association bookkeeping."""

from __future__ import annotations

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from memobot.models.memory import Memory, MemoryTag, Tag
from memobot.utils.tag_similarity import normalize_tag_name

MAX_TAG_LENGTH = 64


def clean_tag_name(name: str) -> str:
    return " ".join(name.strip().lower().lstrip("#").split())[:MAX_TAG_LENGTH]


class TagService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_tag_by_name(self, user_id: UUID, name: str) -> Optional[Tag]:
        return (
            self.db.query(Tag)
            .filter(Tag.user_id == user_id, Tag.name == clean_tag_name(name))
            .first()
        )

    def get_or_create(self, user_id: UUID, name: str) -> Tag:
        cleaned = clean_tag_name(name)
        tag = self.get_tag_by_name(user_id, cleaned)
        if tag is None:
            tag = Tag(
                user_id=user_id,
                name=cleaned,
                normalized_name=normalize_tag_name(cleaned),
                usage_count=0,
            )
            self.db.add(tag)
            self.db.flush()
        return tag

    def attach_tags(
        self, memory: Memory, names: Iterable[str], commit: bool = True
    ) -> List[Tag]:
        """Associate tags with a memory, bumping usage for new associations only."""
        attached: List[Tag] = []
        seen: set[str] = set()
        for raw in names:
            cleaned = clean_tag_name(raw)
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            tag = self.get_or_create(memory.user_id, cleaned)
            exists = self.db.get(MemoryTag, (memory.id, tag.id))
            if exists is None:
                self.db.add(MemoryTag(memory_id=memory.id, tag_id=tag.id))
                tag.usage_count = (tag.usage_count or 0) + 1
            attached.append(tag)
        self.db.flush()
        if commit:
            self.db.commit()
        return attached

    def detach_all(self, memory: Memory, commit: bool = True) -> None:
        """Drop a memory's associations and decrement usage (used on soft delete)."""
        links = (
            self.db.execute(select(MemoryTag).where(MemoryTag.memory_id == memory.id))
            .scalars()
            .all()
        )
        for link in links:
            tag = self.db.get(Tag, link.tag_id)
            if tag is not None and tag.usage_count:
                tag.usage_count -= 1
            self.db.delete(link)
        self.db.flush()
        if commit:
            self.db.commit()

    def tag_names_for_memory(self, memory_id: UUID) -> List[str]:
        stmt = (
            select(Tag.name)
            .join(MemoryTag, MemoryTag.tag_id == Tag.id)
            .where(MemoryTag.memory_id == memory_id)
            .order_by(Tag.name)
        )
        return list(self.db.execute(stmt).scalars())

    def list_tags(self, user_id: UUID) -> List[Tag]:
        return (
            self.db.query(Tag)
            .filter(Tag.user_id == user_id)
            .order_by(Tag.usage_count.desc(), Tag.created_at.asc())
            .all()
        )
