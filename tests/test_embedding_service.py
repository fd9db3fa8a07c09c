"""Tests for embedding service."""

import httpx
import numpy as np
import openai
import pytest

from stylerec.ai import embedding_service as embedding_module
from stylerec.ai.embedding_service import EmbeddingService, EmbeddingServiceError


class FakeEmbeddings:
    def __init__(self, dimension=4, error=None):
        self.dimension = dimension
        self.error = error
        self.inputs = []

    async def create(self, model, input, timeout=None):
        self.inputs.append(list(input))
        if self.error is not None:
            raise self.error
        rows = [
            type("Row", (), {"index": i, "embedding": [float(len(text))] * self.dimension})()
            for i, text in enumerate(input)
        ]
        # The API does not promise ordering; results are re-sorted by index
        return type("Response", (), {"data": list(reversed(rows))})()


@pytest.fixture
def fake_api(monkeypatch):
    api = FakeEmbeddings()
    client = type("Client", (), {"embeddings": api})()
    monkeypatch.setattr(embedding_module, "get_openai_client", lambda: client)
    return api


@pytest.mark.asyncio
async def test_generate_embedding(fake_api):
    """Test single embedding generation."""
    service = EmbeddingService(provider="openai")
    embedding = await service.generate_embedding("Cos wool scarf")

    assert isinstance(embedding, np.ndarray)
    assert embedding.dtype == np.float32
    assert embedding.tolist() == [14.0] * 4


@pytest.mark.asyncio
async def test_generate_embeddings_batch(fake_api):
    """Test batch embedding generation."""
    texts = ["a", "", "abc", "   ", "ab"]
    service = EmbeddingService(provider="openai")

    embeddings = await service.generate_embeddings_batch(texts, use_cache=False, batch_size=2)

    assert len(embeddings) == len(texts)
    assert embeddings[1] is None and embeddings[3] is None
    assert [e[0] for e in (embeddings[0], embeddings[2], embeddings[4])] == [1.0, 3.0, 2.0]
    assert fake_api.inputs == [["a", "abc"], ["ab"]]


@pytest.mark.asyncio
async def test_embedding_cache(fake_api):
    """Test embedding caching."""
    service = EmbeddingService(provider="openai")

    first = await service.generate_embedding("Test product for caching")
    second = await service.generate_embedding("Test product for caching")

    assert np.array_equal(first, second)
    assert len(fake_api.inputs) == 1
    assert service.get_cache_size() == 1

    service.clear_cache()
    assert service.get_cache_size() == 0


@pytest.mark.asyncio
async def test_empty_text_rejected():
    with pytest.raises(ValueError):
        await EmbeddingService(provider="openai").generate_embedding("  ")


@pytest.mark.asyncio
async def test_api_errors_carry_transient_flag(fake_api):
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    fake_api.error = openai.APIConnectionError(request=request)

    with pytest.raises(EmbeddingServiceError) as exc_info:
        await EmbeddingService(provider="openai").generate_embedding("text", use_cache=False)
    assert exc_info.value.transient is True

    fake_api.error = openai.AuthenticationError(
        "bad key", response=httpx.Response(401, request=request), body=None
    )
    with pytest.raises(EmbeddingServiceError) as exc_info:
        await EmbeddingService(provider="openai").generate_embedding("text", use_cache=False)
    assert exc_info.value.transient is False


@pytest.mark.asyncio
async def test_unknown_provider():
    with pytest.raises(EmbeddingServiceError):
        await EmbeddingService(provider="telepathy").generate_embedding("text", use_cache=False)
