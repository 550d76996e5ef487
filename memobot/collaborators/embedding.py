"""
Embedding collaborator.

``embed(text)`` returns a fixed-dimension vector. Results are cached in a small
LRU with a TTL, keyed on normalized text, since the same phrasing is often
embedded repeatedly (recall questions, re-saves).
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Protocol, Sequence

import openai
from openai import AsyncOpenAI

from memobot.core.errors import TransientDependencyFailure

logger = logging.getLogger(__name__)

MAX_INPUT_CHARS = 8000
CACHE_MAX_ENTRIES = 500
CACHE_TTL_SECONDS = 60 * 60


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def cache_key(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip().lower())


class EmbeddingCache:
    def __init__(
        self,
        max_entries: int = CACHE_MAX_ENTRIES,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._data: "OrderedDict[str, tuple[float, list[float]]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[list[float]]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            stored_at, vector = item
            if self._clock() - stored_at > self._ttl:
                del self._data[key]
                return None
            self._data.move_to_end(key)
            return vector

    def put(self, key: str, vector: Sequence[float]) -> None:
        with self._lock:
            self._data[key] = (self._clock(), list(vector))
            self._data.move_to_end(key)
            while len(self._data) > self._max_entries:
                self._data.popitem(last=False)

    def __len__(self) -> int:
        return len(self._data)


class OpenAIEmbedder:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "text-embedding-3-small",
        dimensions: int = 512,
        timeout: float = 15.0,
        cache: Optional[EmbeddingCache] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._dimensions = dimensions
        self._timeout = timeout
        self._cache = cache if cache is not None else EmbeddingCache()
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        key = cache_key(text)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            response = await self._get_client().embeddings.create(
                model=self._model,
                input=text[:MAX_INPUT_CHARS],
                dimensions=self._dimensions,
            )
        except openai.OpenAIError as e:
            logger.warning("Embedding request failed: %s", e)
            raise TransientDependencyFailure(f"Embedding failed: {e}") from e
        vector = list(response.data[0].embedding)
        self._cache.put(key, vector)
        return vector
