"""Document, Chunk and retrieval data structures for RAG."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ragpilot.utils.config import PoolingStrategy


class Document(BaseModel):
    """A document to be chunked and indexed.

    Attributes:
        id: Unique identifier for the document
        content: The text content of the document
        metadata: Additional metadata about the document
        source: Optional source URL or path
    """

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    source: Optional[str] = None

    def __repr__(self) -> str:
        content_preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"Document(id={self.id!r}, content={content_preview!r})"


class ChunkStatus(str, Enum):
    """Review state of a chunk."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"


class ChunkMetadata(BaseModel):
    """Structural facts about a chunk.

    Attributes:
        start_offset: Start character offset in the source document
        end_offset: End character offset in the source document
        has_header: Chunk contains a markdown or numbered header
        is_qa_pair: Chunk is a question/answer pair
        is_table: Chunk contains a table
        is_list: Chunk contains a list
        document_type: Detected document type (faq, technical, legal, general)
        sentence_count: Number of sentences in the chunk
        avg_sentence_length: Average sentence length in characters
        language: Detected language (ko, en, mixed)
        readability_score: Rough readability estimate, 0-100
    """

    start_offset: int = 0
    end_offset: int = 0
    has_header: bool = False
    is_qa_pair: bool = False
    is_table: bool = False
    is_list: bool = False
    document_type: Optional[str] = None
    sentence_count: Optional[int] = None
    avg_sentence_length: Optional[float] = None
    language: Optional[str] = None
    readability_score: Optional[float] = None


class LateChunkingMetadata(BaseModel):
    """How a chunk's embedding was derived from the document pass."""

    pooling_strategy: PoolingStrategy
    source_segment_count: int
    estimated_tokens: int
    document_similarity: float


class Chunk(BaseModel):
    """A chunk of a document.

    Chunks are produced by the boundary detector, embedded by the late
    chunker and finally stored in the indices. ``is_active=False`` is a
    soft delete.
    """

    id: str
    document_id: str
    content: str
    index: int = 0
    embedding: Optional[list[float]] = None
    quality_score: int = 50
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    late_chunking_metadata: Optional[LateChunkingMetadata] = None
    status: ChunkStatus = ChunkStatus.PENDING
    auto_approved: bool = False
    is_active: bool = True

    @field_validator("quality_score")
    @classmethod
    def check_quality_score(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError(f"quality_score must be between 0 and 100, got {value}")
        return value

    @property
    def is_searchable(self) -> bool:
        """Whether the chunk may be served by retrieval."""
        return self.status == ChunkStatus.APPROVED and self.is_active

    def __repr__(self) -> str:
        content_preview = self.content[:30] + "..." if len(self.content) > 30 else self.content
        return f"Chunk(id={self.id!r}, doc_id={self.document_id!r}, content={content_preview!r})"


class RetrievalCandidate(BaseModel):
    """A chunk returned by retrieval, with the scores gathered so far.

    Attributes:
        chunk: The matching chunk
        dense_score: Cosine similarity from the vector index (-1..1)
        sparse_score: Keyword (BM25) score
        score: Fused RRF score, or the index's own score before fusion
        rerank_score: Relevance score assigned by the reranker (1..10)
    """

    chunk: Chunk
    dense_score: Optional[float] = None
    sparse_score: Optional[float] = None
    score: float = 0.0
    rerank_score: Optional[float] = None

    def __repr__(self) -> str:
        return f"RetrievalCandidate(chunk_id={self.chunk.id!r}, score={self.score:.4f})"
