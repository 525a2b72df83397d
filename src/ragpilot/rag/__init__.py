"""RAG preparation and retrieval for ragpilot.

This module provides:
- Document, chunk and retrieval candidate data structures
- Token estimation and token-bounded segmentation
- Structural chunking with quality scoring
- Late chunking (document-level embeddings pooled per chunk)
- Vector and BM25 indices fused with Reciprocal Rank Fusion
- LLM reranking

Example:
    ```python
    from ragpilot.rag import (
        FakeEmbedding,
        HybridRetriever,
        KeywordRetriever,
        LateChunker,
        MemoryVectorStore,
        VectorRetriever,
    )

    embedding = FakeEmbedding()
    chunks = await LateChunker(embedding).late_chunk(text, document_id="doc-1")

    store = MemoryVectorStore()
    await store.add(chunks)
    retriever = HybridRetriever(
        VectorRetriever(embedding, store),
        KeywordRetriever(chunks),
    )
    results = await retriever.retrieve("refund policy")
    ```
"""

# Data structures
from .document import (
    Chunk,
    ChunkMetadata,
    ChunkStatus,
    Document,
    LateChunkingMetadata,
    RetrievalCandidate,
)

# Base classes
from .base import (
    BaseChunker,
    BaseEmbedding,
    BaseReranker,
    BaseRetriever,
    BaseVectorStore,
)

# Embedding providers
from .embeddings import (
    DummyEmbedding,
    FakeEmbedding,
    LocalEmbedding,
    OpenAIEmbedding,
)

# Vector math and tokens
from .vectors import (
    POOLING_STRATEGIES,
    cosine_similarity,
    max_pool,
    mean_pool,
    pool,
    weighted_pool,
)
from .tokens import (
    DEFAULT_SEGMENT_TOKENS,
    DEFAULT_TOKEN_LIMIT,
    estimate_token_count,
    exceeds_token_limit,
    split_by_token_limit,
)

# Chunking and quality
from .chunking import FixedSizeChunker, StructuralChunker
from .late_chunking import LateChunker
from .quality import (
    QualitySummary,
    apply_embedding_validation,
    initial_review_state,
    is_auto_approvable,
    quality_grade,
    score_structural,
    summarize_quality,
)

# Vector stores and retrievers
from .vectorstore import MemoryVectorStore
from .retriever import (
    HybridRetriever,
    KeywordRetriever,
    RetrievalQuality,
    VectorRetriever,
    evaluate_retrieval_quality,
    reciprocal_rank_fusion,
)

# Rerankers
from .reranker import (
    IdentityReranker,
    LLMReranker,
    parse_rerank_scores,
    should_rerank,
)

__all__ = [
    # Data structures
    "Chunk",
    "ChunkMetadata",
    "ChunkStatus",
    "Document",
    "LateChunkingMetadata",
    "RetrievalCandidate",
    # Base classes
    "BaseChunker",
    "BaseEmbedding",
    "BaseReranker",
    "BaseRetriever",
    "BaseVectorStore",
    # Embeddings
    "DummyEmbedding",
    "FakeEmbedding",
    "LocalEmbedding",
    "OpenAIEmbedding",
    # Vectors and tokens
    "POOLING_STRATEGIES",
    "cosine_similarity",
    "max_pool",
    "mean_pool",
    "pool",
    "weighted_pool",
    "DEFAULT_SEGMENT_TOKENS",
    "DEFAULT_TOKEN_LIMIT",
    "estimate_token_count",
    "exceeds_token_limit",
    "split_by_token_limit",
    # Chunking and quality
    "FixedSizeChunker",
    "StructuralChunker",
    "LateChunker",
    "QualitySummary",
    "apply_embedding_validation",
    "initial_review_state",
    "is_auto_approvable",
    "quality_grade",
    "score_structural",
    "summarize_quality",
    # Stores and retrievers
    "MemoryVectorStore",
    "HybridRetriever",
    "KeywordRetriever",
    "RetrievalQuality",
    "VectorRetriever",
    "evaluate_retrieval_quality",
    "reciprocal_rank_fusion",
    # Rerankers
    "IdentityReranker",
    "LLMReranker",
    "parse_rerank_scores",
    "should_rerank",
]
