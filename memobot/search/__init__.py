from memobot.search.base import SearchBackend, SearchHit
from memobot.search.factory import build_search_backend

__all__ = ["SearchBackend", "SearchHit", "build_search_backend"]
