from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from memobot.collaborators.embedding import Embedder, OpenAIEmbedder
from memobot.config import get_settings
from memobot.core import app_state
from memobot.core.app_state import AppState
from memobot.db import get_db
from memobot.models.user import User

EMAIL_HEADER = "X-User-Email"


def get_app_state() -> AppState:
    """FastAPI dependency for the process-wide collaborators."""
    return app_state.state


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    FastAPI dependency resolving the caller's account.

    Authentication happens upstream; the gateway forwards the verified account
    id in a trusted header. The account row is created on first sight.
    """
    header = get_settings().auth_user_header
    raw: Optional[str] = request.headers.get(header)
    if not raw:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = UUID(raw)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Not authenticated") from e
    email = request.headers.get(EMAIL_HEADER)
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email)
        db.add(user)
        db.commit()
        db.refresh(user)
    elif email and user.email != email:
        user.email = email
        db.commit()
    return user


_embedder: Optional[OpenAIEmbedder] = None


def get_embedder() -> Embedder:
    """FastAPI dependency for the shared embedder (and its cache)."""
    global _embedder
    if _embedder is None:
        settings = get_settings()
        _embedder = OpenAIEmbedder(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            timeout=settings.provider_call_timeout_seconds,
        )
    return _embedder
