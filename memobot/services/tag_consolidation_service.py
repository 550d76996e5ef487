"""
Fuzzy tag deduplication.

Tags are clustered with union-find over the pairwise equivalence relation, so
grouping does not depend on iteration order. Each group is merged into its
highest-usage tag and committed on its own; a failure leaves earlier groups
merged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from memobot.models.memory import MemoryTag, Tag
from memobot.utils.tag_similarity import normalize_tag_name, normalized_names_equivalent

logger = logging.getLogger(__name__)


@dataclass
class TagMergeGroup:
    canonical: str
    merged: List[str] = field(default_factory=list)


@dataclass
class TagMergeResult:
    merged: int
    groups: int
    details: List[TagMergeGroup] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.merged:
            return "No similar tags found."
        return f"Merged {self.merged} tags into {self.groups} groups."


class _UnionFind:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, i: int) -> int:
        while self._parent[i] != i:
            self._parent[i] = self._parent[self._parent[i]]
            i = self._parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return
        # Lower index (higher usage) stays root.
        if root_a < root_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_a] = root_b


def group_tags(tags: List[Tag]) -> List[List[Tag]]:
    """
    Connected components of the equivalence graph. ``tags`` must be ordered by
    descending usage; each returned group keeps that order, canonical first.
    """
    normalized = [t.normalized_name or normalize_tag_name(t.name) for t in tags]
    uf = _UnionFind(len(tags))
    for i in range(len(tags)):
        for j in range(i + 1, len(tags)):
            if normalized_names_equivalent(normalized[i], normalized[j]):
                uf.union(i, j)
    components: dict[int, List[Tag]] = {}
    for i, tag in enumerate(tags):
        components.setdefault(uf.find(i), []).append(tag)
    return [group for group in components.values() if len(group) > 1]


class TagConsolidationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _tags_by_usage(self, user_id: UUID) -> List[Tag]:
        return (
            self.db.query(Tag)
            .filter(Tag.user_id == user_id)
            .order_by(Tag.usage_count.desc(), Tag.created_at.asc(), Tag.name.asc())
            .all()
        )

    def merge_similar_tags(self, user_id: UUID) -> TagMergeResult:
        tags = self._tags_by_usage(user_id)
        result = TagMergeResult(merged=0, groups=0)
        for group in group_tags(tags):
            canonical, duplicates = group[0], group[1:]
            self._merge_group(canonical, duplicates)
            result.groups += 1
            result.merged += len(duplicates)
            result.details.append(
                TagMergeGroup(canonical=canonical.name, merged=[d.name for d in duplicates])
            )
            logger.info(
                "Merged tags %s into %s for user %s",
                [d.name for d in duplicates],
                canonical.name,
                user_id,
            )
        return result

    def _merge_group(self, canonical: Tag, duplicates: List[Tag]) -> None:
        try:
            for duplicate in duplicates:
                already_tagged = select(MemoryTag.memory_id).where(
                    MemoryTag.tag_id == canonical.id
                )
                # Move associations the canonical tag doesn't already cover...
                self.db.execute(
                    update(MemoryTag)
                    .where(
                        MemoryTag.tag_id == duplicate.id,
                        MemoryTag.memory_id.not_in(already_tagged),
                    )
                    .values(tag_id=canonical.id)
                    .execution_options(synchronize_session=False)
                )
                # ...and drop the rest, which would be duplicate rows.
                self.db.execute(
                    delete(MemoryTag)
                    .where(MemoryTag.tag_id == duplicate.id)
                    .execution_options(synchronize_session=False)
                )
                canonical.usage_count = (canonical.usage_count or 0) + (
                    duplicate.usage_count or 0
                )
                self.db.delete(duplicate)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
