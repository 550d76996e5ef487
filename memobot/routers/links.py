from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from memobot.core.linker import Linker
from memobot.db import get_db
from memobot.models.user import User
from memobot.routers.utils.dependencies import get_current_user
from memobot.schemas.link import LinkCodeRead

router = APIRouter(prefix="/links", tags=["links"])


@router.post("/code", response_model=LinkCodeRead, status_code=201)
def create_link_code(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LinkCodeRead:
    """Issue a 6-digit code to send as `LINK <code>` from Telegram or WhatsApp."""
    code = Linker(db).generate_link_code(current_user.id)
    return LinkCodeRead.model_validate(code)
