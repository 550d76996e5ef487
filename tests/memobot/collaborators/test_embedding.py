"""Tests for the embedding collaborator and its cache."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from memobot.collaborators.embedding import EmbeddingCache, OpenAIEmbedder, cache_key
from memobot.core.errors import TransientDependencyFailure


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def embeddings_client(vector=(0.1, 0.2, 0.3)):
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(embedding=list(vector))])
    )
    return client


def test_cache_key_normalizes_whitespace_and_case():
    assert cache_key("  Where is my\n\tPassport? ") == "where is my passport?"


def test_cache_expires_entries():
    clock = FakeClock()
    cache = EmbeddingCache(ttl_seconds=10, clock=clock)
    cache.put("k", [1.0])
    clock.now = 9
    assert cache.get("k") == [1.0]
    clock.now = 21
    assert cache.get("k") is None
    assert len(cache) == 0


def test_cache_evicts_least_recently_used():
    cache = EmbeddingCache(max_entries=2)
    cache.put("a", [1.0])
    cache.put("b", [2.0])
    cache.get("a")
    cache.put("c", [3.0])
    assert cache.get("b") is None
    assert cache.get("a") == [1.0]


@pytest.mark.asyncio
async def test_embed_calls_the_api_once_per_phrasing():
    client = embeddings_client()
    embedder = OpenAIEmbedder(api_key="sk-test", dimensions=3, client=client)

    first = await embedder.embed("Where is my passport?")
    second = await embedder.embed("where is my   passport?")

    assert first == second == [0.1, 0.2, 0.3]
    client.embeddings.create.assert_awaited_once_with(
        model="text-embedding-3-small", input="Where is my passport?", dimensions=3
    )


@pytest.mark.asyncio
async def test_embed_rejects_empty_text():
    with pytest.raises(ValueError):
        await OpenAIEmbedder(api_key="sk-test", client=embeddings_client()).embed("   ")


@pytest.mark.asyncio
async def test_api_errors_are_transient():
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        side_effect=openai.APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        )
    )
    embedder = OpenAIEmbedder(api_key="sk-test", client=client)
    with pytest.raises(TransientDependencyFailure):
        await embedder.embed("passport")
