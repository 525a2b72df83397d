"""Retriever implementations.

Dense (vector) and sparse (BM25) indices each return ranked candidates;
``HybridRetriever`` queries both concurrently and merges them with
Reciprocal Rank Fusion.
"""

import asyncio
import logging
import math
import re
from collections import Counter
from typing import Any, Optional

from pydantic import BaseModel

from ragpilot.utils.config import RetrievalConfig

from .base import BaseEmbedding, BaseRetriever, BaseVectorStore
from .document import Chunk, RetrievalCandidate

logger = logging.getLogger(__name__)

DEFAULT_RRF_K = 60


class VectorRetriever(BaseRetriever):
    """Vector similarity retriever.

    Retrieves chunks based on embedding similarity; candidates carry the
    cosine similarity as ``dense_score``.
    """

    def __init__(
        self,
        embedding: BaseEmbedding,
        vectorstore: BaseVectorStore,
    ):
        """Initialize the vector retriever.

        Args:
            embedding: Embedding model for queries
            vectorstore: Vector store to search
        """
        self.embedding = embedding
        self.vectorstore = vectorstore

    async def search(
        self,
        query: str,
        limit: int = 5,
        filter: Optional[dict[str, Any]] = None,
    ) -> list[RetrievalCandidate]:
        """Retrieve chunks using vector similarity."""
        query_embedding = await self.embedding.embed_query(query)
        return await self.vectorstore.search(query_embedding, limit, filter)


class KeywordRetriever(BaseRetriever):
    """Keyword-based retriever using BM25 scoring.

    Good for exact term matching. Only approved, active chunks are
    returned; candidates carry the BM25 score as ``sparse_score``.
    """

    def __init__(
        self,
        chunks: Optional[list[Chunk]] = None,
        k1: float = 1.5,
        b: float = 0.75,
    ):
        """Initialize the keyword retriever.

        Args:
            chunks: Chunks to index
            k1: BM25 k1 parameter (term frequency saturation)
            b: BM25 b parameter (document length normalization)
        """
        self.k1 = k1
        self.b = b
        self._chunks: dict[str, Chunk] = {}
        self._doc_lengths: dict[str, int] = {}
        self._term_freqs: dict[str, Counter] = {}
        self._doc_freqs: Counter = Counter()
        self._avg_doc_length: float = 0

        if chunks:
            self.add_chunks(chunks)

    def add_chunks(self, chunks: list[Chunk]) -> None:
        """Add chunks to the index, replacing any with the same ID."""
        for chunk in chunks:
            if chunk.id in self._chunks:
                self._remove_terms(chunk.id)

            self._chunks[chunk.id] = chunk

            tokens = self._tokenize(chunk.content)
            self._doc_lengths[chunk.id] = len(tokens)
            self._term_freqs[chunk.id] = Counter(tokens)

            for term in set(tokens):
                self._doc_freqs[term] += 1

        self._update_avg_length()

    def update_chunk(self, chunk: Chunk) -> bool:
        """Replace the stored copy of a chunk (e.g. after review)."""
        if chunk.id not in self._chunks:
            return False
        if chunk.content != self._chunks[chunk.id].content:
            self.add_chunks([chunk])
        else:
            self._chunks[chunk.id] = chunk
        return True

    def remove_chunks(self, ids: list[str]) -> None:
        """Drop chunks from the index. Unknown IDs are ignored."""
        for chunk_id in ids:
            if self._chunks.pop(chunk_id, None) is not None:
                self._remove_terms(chunk_id)
        self._update_avg_length()

    def _remove_terms(self, chunk_id: str) -> None:
        for term in self._term_freqs.pop(chunk_id, Counter()):
            self._doc_freqs[term] -= 1
            if self._doc_freqs[term] <= 0:
                del self._doc_freqs[term]
        self._doc_lengths.pop(chunk_id, None)

    def _update_avg_length(self) -> None:
        total_docs = len(self._chunks)
        total_length = sum(self._doc_lengths.values())
        self._avg_doc_length = total_length / total_docs if total_docs > 0 else 0

    def _tokenize(self, text: str) -> list[str]:
        """Tokenize text into lowercase terms."""
        return re.findall(r"\b\w+\b", text.lower())

    def _score(self, query_tokens: list[str], chunk_id: str) -> float:
        """Calculate BM25 score for a chunk."""
        score = 0.0
        doc_len = self._doc_lengths.get(chunk_id, 0)
        doc_term_freqs = self._term_freqs.get(chunk_id, Counter())
        N = len(self._chunks)

        for term in query_tokens:
            if term not in self._doc_freqs:
                continue

            df = self._doc_freqs[term]
            idf = math.log((N - df + 0.5) / (df + 0.5) + 1)

            tf = doc_term_freqs.get(term, 0)

            numerator = tf * (self.k1 + 1)
            denominator = tf + self.k1 * (
                1 - self.b + self.b * (doc_len / self._avg_doc_length)
            )
            score += idf * (numerator / denominator)

        return score

    async def search(self, query: str, limit: int = 5) -> list[RetrievalCandidate]:
        """Retrieve chunks using BM25. Chunks without any query term are skipped."""
        query_tokens = self._tokenize(query)

        if not query_tokens or not self._chunks or limit <= 0:
            return []

        scores = []
        for chunk_id, chunk in self._chunks.items():
            if not chunk.is_searchable:
                continue

            score = self._score(query_tokens, chunk_id)
            if score > 0:
                scores.append((chunk, score))

        scores.sort(key=lambda x: x[1], reverse=True)

        return [
            RetrievalCandidate(chunk=chunk, sparse_score=score, score=score)
            for chunk, score in scores[:limit]
        ]


def reciprocal_rank_fusion(
    dense: list[RetrievalCandidate],
    sparse: list[RetrievalCandidate],
    k: int = DEFAULT_RRF_K,
    limit: Optional[int] = None,
) -> list[RetrievalCandidate]:
    """Merge two ranked lists with Reciprocal Rank Fusion.

    Each candidate scores ``1 / (k + rank)`` (rank is 1-based) for every
    list it appears in. The dense cosine score and the sparse BM25 score
    are kept on the fused candidate so that thresholds can use them.

    Args:
        dense: Candidates from the vector index, best first
        sparse: Candidates from the keyword index, best first
        k: RRF damping constant
        limit: Maximum number of results (all if None)

    Returns:
        Fused candidates sorted by RRF score, ties broken by dense score
    """
    fused: dict[str, RetrievalCandidate] = {}

    for rank, candidate in enumerate(dense, start=1):
        chunk_id = candidate.chunk.id
        if chunk_id in fused:
            continue
        fused[chunk_id] = RetrievalCandidate(
            chunk=candidate.chunk,
            dense_score=candidate.dense_score,
            score=1.0 / (k + rank),
        )

    seen_sparse: set[str] = set()
    for rank, candidate in enumerate(sparse, start=1):
        chunk_id = candidate.chunk.id
        if chunk_id in seen_sparse:
            continue
        seen_sparse.add(chunk_id)

        contribution = 1.0 / (k + rank)
        existing = fused.get(chunk_id)
        if existing is not None:
            existing.score += contribution
            existing.sparse_score = candidate.sparse_score
        else:
            fused[chunk_id] = RetrievalCandidate(
                chunk=candidate.chunk,
                sparse_score=candidate.sparse_score,
                score=contribution,
            )

    results = sorted(
        fused.values(),
        key=lambda c: (
            c.score,
            c.dense_score is not None,
            c.dense_score if c.dense_score is not None else 0.0,
        ),
        reverse=True,
    )

    return results[:limit] if limit is not None else results


def top_dense_score(candidates: list[RetrievalCandidate]) -> float:
    """Highest dense score among candidates; a missing score counts as 0.0."""
    if not candidates:
        return 0.0
    return max(
        c.dense_score if c.dense_score is not None else 0.0
        for c in candidates
    )


class HybridRetriever(BaseRetriever):
    """Hybrid retriever combining vector and keyword search.

    Both indices are queried concurrently for ``limit * candidate_multiplier``
    results and merged with Reciprocal Rank Fusion. An index that fails
    or times out contributes no results.
    """

    def __init__(
        self,
        dense_index: BaseRetriever,
        sparse_index: Optional[BaseRetriever] = None,
        config: RetrievalConfig = RetrievalConfig(),
    ):
        """Initialize the hybrid retriever.

        Args:
            dense_index: Vector similarity index
            sparse_index: Keyword index (optional)
            config: Fusion and timeout settings
        """
        self.dense_index = dense_index
        self.sparse_index = sparse_index
        self.config = config

    async def _safe_search(
        self,
        index: Optional[BaseRetriever],
        name: str,
        query: str,
        limit: int,
    ) -> list[RetrievalCandidate]:
        if index is None:
            return []
        try:
            return await asyncio.wait_for(
                index.search(query, limit),
                timeout=self.config.search_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{name} search failed, continuing without it: {e}")
            return []

    async def retrieve(self, query: str, limit: int = 5) -> list[RetrievalCandidate]:
        """Retrieve using hybrid search."""
        if not query or not query.strip() or limit <= 0:
            return []

        candidate_limit = limit * self.config.candidate_multiplier
        dense, sparse = await asyncio.gather(
            self._safe_search(self.dense_index, "Dense", query, candidate_limit),
            self._safe_search(self.sparse_index, "Sparse", query, candidate_limit),
        )

        results = reciprocal_rank_fusion(dense, sparse, k=self.config.rrf_k, limit=limit)
        logger.debug(
            f"Hybrid search: {len(dense)} dense, {len(sparse)} sparse, "
            f"{len(results)} fused"
        )
        return results

    async def search(self, query: str, limit: int = 5) -> list[RetrievalCandidate]:
        return await self.retrieve(query, limit)


class RetrievalQuality(BaseModel):
    """Summary of how trustworthy a result list looks."""

    has_results: bool
    top_score: float
    top_dense_score: float
    avg_score: float
    quality: str


def evaluate_retrieval_quality(candidates: list[RetrievalCandidate]) -> RetrievalQuality:
    """Grade retrieval results as high / medium / low / none by dense score."""
    if not candidates:
        return RetrievalQuality(
            has_results=False,
            top_score=0.0,
            top_dense_score=0.0,
            avg_score=0.0,
            quality="none",
        )

    dense = top_dense_score(candidates)
    if dense >= 0.8:
        quality = "high"
    elif dense >= 0.6:
        quality = "medium"
    else:
        quality = "low"

    return RetrievalQuality(
        has_results=True,
        top_score=candidates[0].score,
        top_dense_score=dense,
        avg_score=sum(c.score for c in candidates) / len(candidates),
        quality=quality,
    )
