"""Vector store implementations."""

import logging
from typing import Any, Optional

from ragpilot.exceptions import EmbeddingError

from .base import BaseVectorStore
from .document import Chunk, RetrievalCandidate
from .vectors import check_dimensions, cosine_similarity

logger = logging.getLogger(__name__)


class MemoryVectorStore(BaseVectorStore):
    """In-memory vector store for testing and small datasets.

    Stores all vectors in memory and performs exact similarity search.
    Every chunk is stored, but only approved, active chunks are returned
    by ``search``. Not suitable for large-scale production use.
    """

    def __init__(self) -> None:
        """Initialize the memory vector store."""
        self._chunks: dict[str, Chunk] = {}
        self._dimension: Optional[int] = None

    async def add(self, chunks: list[Chunk]) -> list[str]:
        """Add embedded chunks to the store."""
        if not chunks:
            return []

        for chunk in chunks:
            if not chunk.embedding:
                raise EmbeddingError(f"Chunk {chunk.id} has no embedding")

        self._dimension = check_dimensions([c.embedding for c in chunks], self._dimension)

        ids = []
        for chunk in chunks:
            self._chunks[chunk.id] = chunk
            ids.append(chunk.id)

        logger.debug(f"Added {len(ids)} chunks to memory store")
        return ids

    async def search(
        self,
        query_embedding: list[float],
        k: int = 5,
        filter: Optional[dict[str, Any]] = None,
    ) -> list[RetrievalCandidate]:
        """Search for similar chunks using cosine similarity."""
        if not self._chunks or k <= 0:
            return []

        similarities = []
        for chunk in self._chunks.values():
            if not chunk.is_searchable:
                continue
            if filter and not self._matches_filter(chunk, filter):
                continue

            score = cosine_similarity(query_embedding, chunk.embedding)
            similarities.append((chunk, score))

        similarities.sort(key=lambda x: x[1], reverse=True)

        return [
            RetrievalCandidate(chunk=chunk, dense_score=score, score=score)
            for chunk, score in similarities[:k]
        ]

    def _matches_filter(self, chunk: Chunk, filter: dict[str, Any]) -> bool:
        """Check if chunk matches the filter criteria.

        Keys name chunk fields (``document_id``) or metadata fields
        (``document_type``, ``language``, ...).
        """
        for key, value in filter.items():
            if hasattr(chunk, key):
                actual = getattr(chunk, key)
            elif hasattr(chunk.metadata, key):
                actual = getattr(chunk.metadata, key)
            else:
                return False
            if actual != value:
                return False
        return True

    async def get(self, id: str) -> Optional[Chunk]:
        """Get a chunk by its ID."""
        return self._chunks.get(id)

    async def update(self, chunk: Chunk) -> bool:
        """Replace a stored chunk."""
        if chunk.id not in self._chunks:
            return False
        self._chunks[chunk.id] = chunk
        return True

    async def delete(self, ids: list[str]) -> bool:
        for id in ids:
            self._chunks.pop(id, None)
        if not self._chunks:
            self._dimension = None
        return True

    async def delete_document(self, document_id: str) -> list[str]:
        """Delete every chunk of a document and return the removed IDs."""
        ids = [c.id for c in self._chunks.values() if c.document_id == document_id]
        await self.delete(ids)
        if ids:
            logger.debug(f"Removed {len(ids)} chunks of document {document_id}")
        return ids

    async def list_chunks(self, document_id: Optional[str] = None) -> list[Chunk]:
        """Return stored chunks, optionally for one document."""
        return [
            c for c in self._chunks.values()
            if document_id is None or c.document_id == document_id
        ]

    async def count(self) -> int:
        """Return the number of chunks."""
        return len(self._chunks)
