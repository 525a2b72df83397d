"""
Test configuration and fixtures.
"""

from unittest.mock import AsyncMock

import pytest

from ragpilot.providers.base import LLMProvider, LLMResponse
from ragpilot.rag.document import Chunk, ChunkStatus, RetrievalCandidate
from ragpilot.rag.embeddings import FakeEmbedding


def llm_reply(text):
    """Provider response dict carrying ``text``."""
    return LLMResponse.from_text(text, prompt_tokens=10, completion_tokens=5).to_dict()


def make_provider(reply=None, side_effect=None):
    """LLMProvider whose ``complete`` is an AsyncMock."""
    provider = AsyncMock(spec=LLMProvider)
    if side_effect is not None:
        provider.complete.side_effect = side_effect
    else:
        provider.complete.return_value = llm_reply(reply or "")
    return provider


def make_chunk(chunk_id, content=None, embedding=None, **kwargs):
    kwargs.setdefault("status", ChunkStatus.APPROVED)
    return Chunk(
        id=chunk_id,
        document_id=kwargs.pop("document_id", "doc-1"),
        content=content or f"content of {chunk_id}",
        embedding=embedding,
        **kwargs,
    )


def make_candidate(chunk_id, dense_score=None, sparse_score=None, score=None):
    return RetrievalCandidate(
        chunk=make_chunk(chunk_id),
        dense_score=dense_score,
        sparse_score=sparse_score,
        score=score if score is not None else (dense_score or 0.0),
    )


@pytest.fixture
def fake_embedding():
    """Deterministic 64-dimensional word-hash embedding."""
    return FakeEmbedding(dimension=64)


@pytest.fixture
def faq_document():
    """A short FAQ with one well-formed Q&A pair per refund topic."""
    return (
        "# Refund FAQ\n\n"
        "Q: How long does a refund take to arrive?\n"
        "A: Refunds are processed within five business days after we receive "
        "the returned item. Card refunds can take another two or three days "
        "to appear on your statement, depending on your bank.\n\n"
        "Q: Can I cancel an order after it has shipped?\n"
        "A: Shipped orders cannot be cancelled, but you can return them for a "
        "full refund within thirty days of delivery using the prepaid label "
        "included in the package.\n"
    )


@pytest.fixture
def general_document():
    return (
        "The office opens at nine in the morning on weekdays. Visitors must "
        "sign in at the front desk and wear a badge at all times.\n\n"
        "Parking is available in the underground garage. Staff members park "
        "on level two while visitors use level one near the elevators.\n\n"
        "The cafeteria serves lunch from noon until two in the afternoon. "
        "Vegetarian options are offered every day of the week."
    )
