"""
PostgreSQL backend: tsvector full-text search and pgvector cosine distance.

The tsvector is computed from the row; the migration creates a GIN index on
the same expression.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, literal_column, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from memobot.core.errors import TransientDependencyFailure
from memobot.models.memory import Memory
from memobot.search.base import SearchBackend, SearchHit

logger = logging.getLogger(__name__)

TS_CONFIG = literal_column("'english'::regconfig")


def memory_document():
    return func.to_tsvector(
        TS_CONFIG,
        func.coalesce(Memory.title, "")
        + " "
        + func.coalesce(Memory.summary, "")
        + " "
        + Memory.content,
    )


class PostgresSearchBackend(SearchBackend):
    def __init__(self, db: Session) -> None:
        self.db = db

    def full_text(self, user_id: UUID, query: str, limit: int) -> list[SearchHit]:
        if not query or not query.strip():
            return []
        document = memory_document()
        ts_query = func.websearch_to_tsquery(TS_CONFIG, query)
        rank = func.ts_rank_cd(document, ts_query)
        stmt = (
            select(Memory.id, Memory.created_at, rank.label("rank"))
            .where(
                Memory.user_id == user_id,
                Memory.deleted_at.is_(None),
                document.op("@@")(ts_query),
            )
            .order_by(rank.desc(), Memory.created_at.desc())
            .limit(limit)
        )
        try:
            rows = self.db.execute(stmt).all()
        except DBAPIError as e:
            raise TransientDependencyFailure(f"Full-text search failed: {e}") from e
        return [SearchHit(row.id, float(row.rank), row.created_at) for row in rows]

    def nearest(
        self,
        user_id: UUID,
        embedding: Sequence[float],
        limit: int,
        threshold: Optional[float] = None,
        exclude_ids: Iterable[UUID] = (),
    ) -> list[SearchHit]:
        distance = Memory.embedding.cosine_distance(list(embedding))
        stmt = select(Memory.id, Memory.created_at, distance.label("distance")).where(
            Memory.user_id == user_id,
            Memory.deleted_at.is_(None),
            Memory.embedding.is_not(None),
        )
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(Memory.id.not_in(excluded))
        if threshold is not None:
            stmt = stmt.where(distance <= 1 - threshold)
        stmt = stmt.order_by(distance).limit(limit)
        try:
            rows = self.db.execute(stmt).all()
        except DBAPIError as e:
            raise TransientDependencyFailure(f"Vector search failed: {e}") from e
        return [
            SearchHit(row.id, 1.0 - float(row.distance), row.created_at) for row in rows
        ]
