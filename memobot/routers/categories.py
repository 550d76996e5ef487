from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from memobot.db import get_db
from memobot.models.user import User
from memobot.routers.utils.dependencies import get_current_user
from memobot.schemas.category import CategoryRead, CategoryRecalculateResponse
from memobot.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=List[CategoryRead])
def list_categories(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[CategoryRead]:
    """The caller's categories, largest first."""
    categories = CategoryService(db).list_categories(current_user.id)
    return [CategoryRead.model_validate(c) for c in categories]


@router.post("/recalculate", response_model=CategoryRecalculateResponse)
def recalculate_categories(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CategoryRecalculateResponse:
    return CategoryRecalculateResponse(
        updated=CategoryService(db).recalculate(current_user.id)
    )
