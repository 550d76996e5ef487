from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from memobot.db import db_manager


@contextmanager
def db_session() -> Iterator[Session]:
    """Session scope for code running outside a request (tasks, session chain)."""
    db = db_manager.new_session()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
