"""
Category assignment for new memories.

A memory joins the existing category whose name embedding is closest to the
memory's own embedding, when that similarity clears the match threshold.
Otherwise the suggested name decides: an existing category with the same name
(case-insensitive), then one whose name embedding is close to the suggestion,
and only then a new category.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from memobot.collaborators.embedding import Embedder
from memobot.config import Settings, get_settings
from memobot.models.category import DEFAULT_CATEGORY_NAME, Category
from memobot.models.memory import Memory
from memobot.search.scan import cosine_similarity

logger = logging.getLogger(__name__)

MAX_CATEGORY_NAME_LENGTH = 50


def clean_category_name(name: Optional[str]) -> str:
    cleaned = " ".join((name or "").replace('"', "").replace("'", "").split())
    cleaned = cleaned.rstrip(".!?")
    if not cleaned or len(cleaned) > MAX_CATEGORY_NAME_LENGTH:
        return DEFAULT_CATEGORY_NAME
    return cleaned


class CategoryService:
    def __init__(
        self,
        db: Session,
        embedder: Optional[Embedder] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.embedder = embedder
        self.settings = settings or get_settings()

    def list_categories(self, user_id: UUID) -> List[Category]:
        return (
            self.db.query(Category)
            .filter(Category.user_id == user_id)
            .order_by(Category.memory_count.desc(), Category.name.asc())
            .all()
        )

    def category_names(self, user_id: UUID) -> List[str]:
        return [c.name for c in self.list_categories(user_id)]

    @staticmethod
    def _closest(
        categories: Iterable[Category], embedding: Sequence[float], threshold: float
    ) -> Optional[Category]:
        best, best_score = None, threshold
        for category in categories:
            score = cosine_similarity(embedding, category.embedding)
            if score >= best_score:
                best, best_score = category, score
        return best

    async def assign(
        self,
        user_id: UUID,
        embedding: Sequence[float],
        suggested_name: Optional[str] = None,
    ) -> Category:
        """
        Pick or create the category for a new memory and count the memory in it.

        Only flushes; the caller commits together with the memory row.
        """
        categories = self.list_categories(user_id)
        with_embedding = [c for c in categories if c.embedding is not None]
        category = self._closest(
            with_embedding, embedding, self.settings.category_match_threshold
        )
        if category is None:
            name = clean_category_name(suggested_name)
            category = next(
                (c for c in categories if c.name.lower() == name.lower()), None
            )
            if category is None:
                name_embedding = await self.embedder.embed(name)
                category = self._closest(
                    with_embedding,
                    name_embedding,
                    self.settings.category_name_match_threshold,
                )
                if category is None:
                    category = Category(
                        user_id=user_id,
                        name=name,
                        embedding=name_embedding,
                        memory_count=0,
                    )
                    self.db.add(category)
                    logger.info("Created category %r for user %s", name, user_id)
        category.memory_count = (category.memory_count or 0) + 1
        self.db.flush()
        return category

    def release(self, memory: Memory) -> None:
        """Uncount a memory that is being deleted. Flushes only."""
        category = memory.category
        if category is not None and category.memory_count:
            category.memory_count -= 1
            self.db.flush()

    def recalculate(self, user_id: UUID) -> int:
        """Recount live memories per category. Returns how many counts changed."""
        stmt = (
            select(Memory.category_id, func.count(Memory.id))
            .where(
                Memory.user_id == user_id,
                Memory.deleted_at.is_(None),
                Memory.category_id.is_not(None),
            )
            .group_by(Memory.category_id)
        )
        actual = dict(self.db.execute(stmt).all())
        changed = 0
        for category in self.list_categories(user_id):
            count = actual.get(category.id, 0)
            if category.memory_count != count:
                category.memory_count = count
                changed += 1
        self.db.commit()
        logger.info("Recalculated categories for user %s: %d changed", user_id, changed)
        return changed
