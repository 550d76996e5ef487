"""Celery task for background tag consolidation."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from memobot.infra.celery_app import celery_app
from memobot.infra.logging_config import get_logger
from memobot.services.tag_consolidation_service import TagConsolidationService
from memobot.utils.db.db_session_helper import db_session

logger = get_logger("tag_merge")


@celery_app.task(name="memobot.tasks.tag_merge_task.merge_similar_tags_task")
def merge_similar_tags_task(user_id_str: str) -> dict[str, Any] | None:
    """Merge near-duplicate tags for one user."""
    try:
        user_id = UUID(user_id_str)
    except ValueError:
        logger.warning("Invalid user_id for tag merge: %s", user_id_str)
        return None
    with db_session() as db:
        result = TagConsolidationService(db).merge_similar_tags(user_id)
    logger.info("Tag merge for %s: %s", user_id, result.message)
    return {"merged": result.merged, "groups": result.groups, "message": result.message}
