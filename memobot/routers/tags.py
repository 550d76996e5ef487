from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from memobot.db import get_db
from memobot.models.user import User
from memobot.routers.utils.dependencies import get_current_user
from memobot.schemas.tag import TagMergeGroupRead, TagMergeResponse, TagRead
from memobot.services.tag_consolidation_service import TagConsolidationService
from memobot.services.tag_service import TagService

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("", response_model=List[TagRead])
def list_tags(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[TagRead]:
    return [TagRead.model_validate(t) for t in TagService(db).list_tags(current_user.id)]


@router.post("/merge", response_model=TagMergeResponse)
def merge_similar_tags(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TagMergeResponse:
    """Merge the caller's near-duplicate tags into their most used spelling."""
    result = TagConsolidationService(db).merge_similar_tags(current_user.id)
    return TagMergeResponse(
        merged=result.merged,
        groups=result.groups,
        message=result.message,
        details=[
            TagMergeGroupRead(canonical=g.canonical, merged=g.merged)
            for g in result.details
        ],
    )
