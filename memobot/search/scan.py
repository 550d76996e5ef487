"""
Portable backend that scores a user's memories in Python.

Used on databases without tsvector/pgvector support (SQLite in development
and tests). Lexical scoring is term frequency over title, summary and content
with title matches counted double; similarity is plain cosine.
"""

from __future__ import annotations

import math
import re
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from memobot.models.memory import Memory
from memobot.search.base import SearchBackend, SearchHit
from memobot.utils.time import as_utc

_TOKEN_RE = re.compile(r"[a-z0-9]+")

STOPWORDS = frozenset(
    "a an and are as at be by did do does for from had has have how i in is it "
    "me my of on or so that the this to was were what when where which who why "
    "with you your".split()
)


def tokenize(text: Optional[str]) -> list[str]:
    return [t for t in _TOKEN_RE.findall((text or "").lower()) if t not in STOPWORDS]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class ScanSearchBackend(SearchBackend):
    def __init__(self, db: Session) -> None:
        self.db = db

    def _live_memories(self, user_id: UUID) -> list[Memory]:
        stmt = select(Memory).where(
            Memory.user_id == user_id, Memory.deleted_at.is_(None)
        )
        return list(self.db.execute(stmt).scalars())

    def full_text(self, user_id: UUID, query: str, limit: int) -> list[SearchHit]:
        terms = set(tokenize(query))
        if not terms:
            return []
        hits = []
        for memory in self._live_memories(user_id):
            title_tokens = tokenize(memory.title)
            body_tokens = tokenize(memory.summary) + tokenize(memory.content)
            score = sum(2.0 for t in title_tokens if t in terms) + sum(
                1.0 for t in body_tokens if t in terms
            )
            if score > 0:
                hits.append(SearchHit(memory.id, score, as_utc(memory.created_at)))
        hits.sort(key=lambda h: (h.score, h.created_at), reverse=True)
        return hits[:limit]

    def nearest(
        self,
        user_id: UUID,
        embedding: Sequence[float],
        limit: int,
        threshold: Optional[float] = None,
        exclude_ids: Iterable[UUID] = (),
    ) -> list[SearchHit]:
        excluded = set(exclude_ids)
        query = [float(x) for x in embedding]
        hits = []
        for memory in self._live_memories(user_id):
            if memory.id in excluded or memory.embedding is None:
                continue
            similarity = cosine_similarity(query, [float(x) for x in memory.embedding])
            if threshold is not None and similarity < threshold:
                continue
            hits.append(SearchHit(memory.id, similarity, as_utc(memory.created_at)))
        hits.sort(key=lambda h: (h.score, h.created_at), reverse=True)
        return hits[:limit]
