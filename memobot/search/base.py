"""Storage-side retrieval contract: full-text match and nearest-neighbor match."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence
from uuid import UUID


@dataclass(frozen=True)
class SearchHit:
    """
    One ranked match. ``score`` is backend-native for full text and cosine
    similarity (1 - cosine distance) for nearest-neighbor matches.
    """

    memory_id: UUID
    score: float
    created_at: datetime


class SearchBackend(ABC):
    """Both operations scope to user_id and exclude soft-deleted memories."""

    @abstractmethod
    def full_text(self, user_id: UUID, query: str, limit: int) -> list[SearchHit]:
        """Lexical matches, best first."""
        ...

    @abstractmethod
    def nearest(
        self,
        user_id: UUID,
        embedding: Sequence[float],
        limit: int,
        threshold: Optional[float] = None,
        exclude_ids: Iterable[UUID] = (),
    ) -> list[SearchHit]:
        """Nearest memories by cosine similarity, best first, at or above ``threshold``."""
        ...
