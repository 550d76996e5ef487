"""
Relationship graph maintenance.

Edges are undirected and stored once per pair with memory_a_id < memory_b_id.
Automatic discovery never touches manual edges; manual links always score 1.0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, case, or_, select
from sqlalchemy.orm import Session

from memobot.config import Settings, get_settings
from memobot.core.errors import NotFound, StateConflict
from memobot.models.memory import (
    MANUAL_RELATIONSHIP_SCORE,
    RELATIONSHIP_AUTO,
    RELATIONSHIP_MANUAL,
    Memory,
    MemoryRelationship,
)
from memobot.search.base import SearchBackend
from memobot.search.factory import build_search_backend

logger = logging.getLogger(__name__)


class RelatedCandidate(NamedTuple):
    memory_id: UUID
    similarity: float


@dataclass
class RelatedMemory:
    memory: Memory
    similarity: float
    relationship_type: str


def canonical_pair(a: UUID, b: UUID) -> tuple[UUID, UUID]:
    return (a, b) if a < b else (b, a)


class RelationshipService:
    def __init__(
        self,
        db: Session,
        backend: Optional[SearchBackend] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self._backend = backend
        self.settings = settings or get_settings()

    @property
    def backend(self) -> SearchBackend:
        if self._backend is None:
            self._backend = build_search_backend(self.db)
        return self._backend

    def _owned_memory(self, user_id: UUID, memory_id: UUID) -> Memory:
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

    def get_relationship(self, a: UUID, b: UUID) -> Optional[MemoryRelationship]:
        first, second = canonical_pair(a, b)
        return (
            self.db.query(MemoryRelationship)
            .filter(
                MemoryRelationship.memory_a_id == first,
                MemoryRelationship.memory_b_id == second,
            )
            .first()
        )

    def find_related(
        self, user_id: UUID, memory_id: UUID, embedding: Sequence[float]
    ) -> List[RelatedCandidate]:
        """Nearest memories above the discovery threshold, excluding the memory itself."""
        count = self.settings.related_memory_count
        hits = self.backend.nearest(
            user_id,
            embedding,
            limit=count + 1,
            threshold=self.settings.related_memory_threshold,
            exclude_ids=[memory_id],
        )
        candidates = [
            RelatedCandidate(h.memory_id, h.score) for h in hits if h.memory_id != memory_id
        ]
        candidates.sort(key=lambda c: c.similarity, reverse=True)
        return candidates[:count]

    def upsert_relationships(
        self,
        user_id: UUID,
        memory_id: UUID,
        candidates: Iterable[RelatedCandidate],
        refresh_scores: bool = True,
        commit: bool = True,
    ) -> List[MemoryRelationship]:
        """
        Insert missing auto edges; refresh scores of existing auto edges when
        ``refresh_scores`` is set. Manual edges are left untouched.
        """
        best: dict[tuple[UUID, UUID], float] = {}
        for candidate in candidates:
            if candidate.memory_id == memory_id:
                continue
            pair = canonical_pair(memory_id, candidate.memory_id)
            best[pair] = max(best.get(pair, float("-inf")), float(candidate.similarity))

        touched: List[MemoryRelationship] = []
        for (first, second), score in best.items():
            edge = self.get_relationship(first, second)
            if edge is None:
                edge = MemoryRelationship(
                    user_id=user_id,
                    memory_a_id=first,
                    memory_b_id=second,
                    relationship_type=RELATIONSHIP_AUTO,
                    similarity_score=score,
                )
                self.db.add(edge)
            elif edge.relationship_type == RELATIONSHIP_AUTO and refresh_scores:
                edge.similarity_score = score
            touched.append(edge)
        self.db.flush()
        if commit:
            self.db.commit()
        return touched

    def link_manual(self, user_id: UUID, a: UUID, b: UUID) -> MemoryRelationship:
        if a == b:
            raise StateConflict(
                "Cannot link a memory to itself",
                user_message="A memory can't be linked to itself.",
            )
        self._owned_memory(user_id, a)
        self._owned_memory(user_id, b)
        first, second = canonical_pair(a, b)
        edge = self.get_relationship(first, second)
        if edge is None:
            edge = MemoryRelationship(
                user_id=user_id,
                memory_a_id=first,
                memory_b_id=second,
                relationship_type=RELATIONSHIP_MANUAL,
                similarity_score=MANUAL_RELATIONSHIP_SCORE,
            )
            self.db.add(edge)
        else:
            edge.relationship_type = RELATIONSHIP_MANUAL
            edge.similarity_score = MANUAL_RELATIONSHIP_SCORE
        self.db.commit()
        self.db.refresh(edge)
        return edge

    def unlink(self, user_id: UUID, a: UUID, b: UUID) -> bool:
        """Delete the edge for the pair. Returns False if there was none."""
        self._owned_memory(user_id, a)
        self._owned_memory(user_id, b)
        edge = self.get_relationship(a, b)
        if edge is None:
            return False
        self.db.delete(edge)
        self.db.commit()
        return True

    def recompute(self, user_id: UUID, memory_id: UUID) -> List[MemoryRelationship]:
        """Re-run discovery for a stored memory using its saved embedding."""
        memory = self._owned_memory(user_id, memory_id)
        if memory.embedding is None:
            return []
        candidates = self.find_related(user_id, memory_id, memory.embedding)
        return self.upsert_relationships(user_id, memory_id, candidates)

    def neighbors(
        self,
        user_id: UUID,
        memory_id: UUID,
        exclude_ids: Iterable[UUID] = (),
        limit: Optional[int] = None,
    ) -> List[RelatedMemory]:
        """
        Live memories one hop from ``memory_id``, looking up the pair in both
        directions, strongest edge first.
        """
        other_id = case(
            (MemoryRelationship.memory_a_id == memory_id, MemoryRelationship.memory_b_id),
            else_=MemoryRelationship.memory_a_id,
        )
        stmt = (
            select(
                Memory,
                MemoryRelationship.similarity_score,
                MemoryRelationship.relationship_type,
            )
            .join(Memory, Memory.id == other_id)
            .where(
                or_(
                    MemoryRelationship.memory_a_id == memory_id,
                    MemoryRelationship.memory_b_id == memory_id,
                ),
                and_(Memory.user_id == user_id, Memory.deleted_at.is_(None)),
            )
            .order_by(
                MemoryRelationship.similarity_score.desc(), Memory.created_at.desc()
            )
        )
        excluded = set(exclude_ids)
        related: List[RelatedMemory] = []
        for memory, score, rel_type in self.db.execute(stmt).all():
            if memory.id in excluded or memory.id == memory_id:
                continue
            related.append(RelatedMemory(memory, float(score), rel_type))
            if limit is not None and len(related) >= limit:
                break
        return related

    def related_for_display(self, user_id: UUID, memory_id: UUID) -> List[RelatedMemory]:
        self._owned_memory(user_id, memory_id)
        return self.neighbors(user_id, memory_id)
