"""
Recall over a user's memories.

``hybrid_search`` fuses lexical and semantic rankings with weighted RRF.
``network_recall`` takes direct semantic hits and adds their one-hop
neighbors from the relationship graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from memobot.collaborators.embedding import Embedder
from memobot.config import Settings, get_settings
from memobot.models.memory import Memory
from memobot.search.base import SearchBackend
from memobot.search.factory import build_search_backend
from memobot.search.fusion import reciprocal_rank_fusion
from memobot.services.relationship_service import RelationshipService

logger = logging.getLogger(__name__)

FULL_TEXT = "full_text"
SEMANTIC = "semantic"

SOURCE_HYBRID = "hybrid"
SOURCE_LEXICAL = "lexical"
SOURCE_DIRECT = "direct"
SOURCE_RELATED = "related"


@dataclass
class RetrievedMemory:
    memory: Memory
    score: float
    source: str
    via: Optional[UUID] = None


class RetrievalService:
    def __init__(
        self,
        db: Session,
        embedder: Optional[Embedder] = None,
        backend: Optional[SearchBackend] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.embedder = embedder
        self.backend = backend or build_search_backend(db)
        self.settings = settings or get_settings()
        self.relationships = RelationshipService(
            db, backend=self.backend, settings=self.settings
        )

    def _load(self, user_id: UUID, memory_ids: Sequence[UUID]) -> dict[UUID, Memory]:
        if not memory_ids:
            return {}
        rows = (
            self.db.query(Memory)
            .filter(
                Memory.id.in_(list(memory_ids)),
                Memory.user_id == user_id,
                Memory.deleted_at.is_(None),
            )
            .all()
        )
        return {m.id: m for m in rows}

    async def hybrid_search(
        self,
        user_id: UUID,
        query_text: str,
        limit: Optional[int] = None,
        query_embedding: Optional[Sequence[float]] = None,
        full_text_weight: Optional[float] = None,
        semantic_weight: Optional[float] = None,
    ) -> List[RetrievedMemory]:
        """
        Lexical and semantic matches fused by weighted RRF; each source
        contributes its top ``2 * limit`` candidates.

        Raises TransientDependencyFailure when embedding or search is
        unavailable; callers may fall back to ``lexical_search``.
        """
        limit = limit if limit is not None else self.settings.hybrid_match_count
        if limit <= 0:
            return []
        depth = limit * 2
        if query_embedding is None:
            if self.embedder is None:
                raise ValueError("hybrid_search needs an embedder or a query embedding")
            query_embedding = await self.embedder.embed(query_text)
        lexical = self.backend.full_text(user_id, query_text, depth)
        semantic = self.backend.nearest(user_id, query_embedding, depth)
        fused = reciprocal_rank_fusion(
            {FULL_TEXT: lexical, SEMANTIC: semantic},
            {
                FULL_TEXT: (
                    full_text_weight
                    if full_text_weight is not None
                    else self.settings.hybrid_full_text_weight
                ),
                SEMANTIC: (
                    semantic_weight
                    if semantic_weight is not None
                    else self.settings.hybrid_semantic_weight
                ),
            },
            k=self.settings.hybrid_rrf_k,
            limit=limit,
        )
        memories = self._load(user_id, [h.memory_id for h in fused])
        return [
            RetrievedMemory(memories[h.memory_id], h.score, SOURCE_HYBRID)
            for h in fused
            if h.memory_id in memories
        ]

    def lexical_search(
        self, user_id: UUID, query_text: str, limit: Optional[int] = None
    ) -> List[RetrievedMemory]:
        limit = limit if limit is not None else self.settings.hybrid_match_count
        hits = self.backend.full_text(user_id, query_text, limit)
        memories = self._load(user_id, [h.memory_id for h in hits])
        return [
            RetrievedMemory(memories[h.memory_id], h.score, SOURCE_LEXICAL)
            for h in hits
            if h.memory_id in memories
        ]

    def network_recall(
        self,
        user_id: UUID,
        query_embedding: Sequence[float],
        initial_count: Optional[int] = None,
        related_count: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
    ) -> List[RetrievedMemory]:
        """
        Direct hits above the threshold, then up to ``related_count`` graph
        neighbors per hit. Neighbors need not clear the threshold. Results are
        direct hits by similarity followed by neighbors in expansion order.
        """
        initial_count = (
            initial_count
            if initial_count is not None
            else self.settings.network_initial_count
        )
        related_count = (
            related_count
            if related_count is not None
            else self.settings.network_related_count
        )
        threshold = (
            similarity_threshold
            if similarity_threshold is not None
            else self.settings.network_similarity_threshold
        )
        seeds = self.backend.nearest(
            user_id, query_embedding, limit=initial_count, threshold=threshold
        )
        memories = self._load(user_id, [h.memory_id for h in seeds])
        results = [
            RetrievedMemory(memories[h.memory_id], h.score, SOURCE_DIRECT)
            for h in seeds
            if h.memory_id in memories
        ]
        selected = {r.memory.id for r in results}
        if related_count <= 0:
            return results
        for seed in list(results):
            for neighbor in self.relationships.neighbors(
                user_id, seed.memory.id, exclude_ids=selected, limit=related_count
            ):
                selected.add(neighbor.memory.id)
                results.append(
                    RetrievedMemory(
                        neighbor.memory,
                        neighbor.similarity,
                        SOURCE_RELATED,
                        via=seed.memory.id,
                    )
                )
        return results

    async def recall(
        self, user_id: UUID, query_text: str, limit: Optional[int] = None
    ) -> List[RetrievedMemory]:
        """Hybrid results first, then network neighbors not already included."""
        limit = limit if limit is not None else self.settings.hybrid_match_count
        query_embedding = await self.embedder.embed(query_text)
        combined = await self.hybrid_search(
            user_id, query_text, limit=limit, query_embedding=query_embedding
        )
        seen = {r.memory.id for r in combined}
        for item in self.network_recall(user_id, query_embedding):
            if item.memory.id not in seen:
                seen.add(item.memory.id)
                combined.append(item)
        return combined
