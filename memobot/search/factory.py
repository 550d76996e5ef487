from __future__ import annotations

from sqlalchemy.orm import Session

from memobot.search.base import SearchBackend
from memobot.search.postgres import PostgresSearchBackend
from memobot.search.scan import ScanSearchBackend


def build_search_backend(db: Session) -> SearchBackend:
    """Native Postgres search where available, Python scan elsewhere."""
    if db.get_bind().dialect.name == "postgresql":
        return PostgresSearchBackend(db)
    return ScanSearchBackend(db)
