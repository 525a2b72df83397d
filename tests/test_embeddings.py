"""Tests for embedding providers."""

import math
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from ragpilot.rag.embeddings import DummyEmbedding, FakeEmbedding, OpenAIEmbedding
from ragpilot.rag.vectors import cosine_similarity


class TestDummyEmbedding:

    @pytest.mark.asyncio
    async def test_zero_vectors(self):
        embedding = DummyEmbedding(dimension=128)

        assert embedding.dimension == 128
        assert await embedding.embed_query("test") == [0.0] * 128

        vecs = await embedding.embed_documents(["a", "b", "c"])
        assert len(vecs) == 3
        assert all(len(v) == 128 for v in vecs)


class TestFakeEmbedding:
    """Tests for the deterministic word-hash embedding."""

    @pytest.mark.asyncio
    async def test_deterministic(self):
        embedding = FakeEmbedding(dimension=64, seed=42)

        vec1 = await embedding.embed_query("hello world")
        vec2 = await embedding.embed_query("hello world")
        vec3 = await embedding.embed_query("goodbye moon")

        assert vec1 == vec2
        assert vec1 != vec3

    @pytest.mark.asyncio
    async def test_normalised(self):
        vec = await FakeEmbedding(dimension=64).embed_query("refunds take five days")

        assert math.isclose(math.sqrt(sum(x * x for x in vec)), 1.0, rel_tol=1e-9)

    @pytest.mark.asyncio
    async def test_shared_words_are_similar(self):
        embedding = FakeEmbedding()
        query = await embedding.embed_query("refund policy")
        related, unrelated = await embedding.embed_documents([
            "our refund policy explained",
            "cafeteria opening hours",
        ])

        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)

    @pytest.mark.asyncio
    async def test_records_document_calls(self):
        embedding = FakeEmbedding(dimension=8)

        await embedding.embed_documents(["a", "b"])
        await embedding.embed_query("c")

        assert embedding.calls == [["a", "b"]]

    @pytest.mark.asyncio
    async def test_text_without_words(self):
        assert await FakeEmbedding(dimension=4).embed_query("!!!") == [0.0] * 4


class TestOpenAIEmbedding:
    """Tests for OpenAIEmbedding with a stubbed client."""

    def test_known_dimensions(self):
        assert OpenAIEmbedding().dimension == 1536
        assert OpenAIEmbedding(model="text-embedding-3-large").dimension == 3072

    @pytest.mark.asyncio
    async def test_batches_documents(self):
        embedding = OpenAIEmbedding(api_key="test", batch_size=2)
        client = MagicMock()
        client.embeddings.create = AsyncMock(side_effect=lambda model, input: SimpleNamespace(
            data=[SimpleNamespace(embedding=[float(len(text))]) for text in input]
        ))
        embedding._client = client

        vectors = await embedding.embed_documents(["a", "bb", "ccc"])

        assert vectors == [[1.0], [2.0], [3.0]]
        assert client.embeddings.create.await_count == 2
