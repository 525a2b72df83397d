"""Base classes and abstract interfaces for RAG components."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .document import Chunk, Document, RetrievalCandidate


class BaseEmbedding(ABC):
    """Abstract base class for embedding models.

    Embedding models convert text into dense vector representations.
    """

    @abstractmethod
    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of documents.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors
        """
        pass

    @abstractmethod
    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query.

        Args:
            text: Query text to embed

        Returns:
            Embedding vector
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        pass


class BaseVectorStore(ABC):
    """Abstract base class for vector stores."""

    @abstractmethod
    async def add(self, chunks: list["Chunk"]) -> list[str]:
        """Add embedded chunks to the store.

        Args:
            chunks: Chunks carrying their embeddings

        Returns:
            List of added chunk IDs
        """
        pass

    @abstractmethod
    async def search(
        self,
        query_embedding: list[float],
        k: int = 5,
        filter: Optional[dict[str, Any]] = None,
    ) -> list["RetrievalCandidate"]:
        """Search for similar chunks.

        Args:
            query_embedding: Query embedding vector
            k: Number of results to return
            filter: Optional metadata filter

        Returns:
            Candidates sorted by similarity, with ``dense_score`` set
        """
        pass

    @abstractmethod
    async def get(self, id: str) -> Optional["Chunk"]:
        """Get a chunk by its ID."""
        pass

    @abstractmethod
    async def update(self, chunk: "Chunk") -> bool:
        """Replace a stored chunk. Returns False if it is not stored."""
        pass

    @abstractmethod
    async def delete(self, ids: list[str]) -> bool:
        """Delete chunks by ID. Unknown IDs are ignored."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Return the number of chunks in the store."""
        pass


class BaseRetriever(ABC):
    """Abstract base class for retrieval indices.

    An index finds candidate chunks for a query and reports its own score.
    """

    @abstractmethod
    async def search(self, query: str, limit: int = 5) -> list["RetrievalCandidate"]:
        """Search the index.

        Args:
            query: Query string
            limit: Number of results to return

        Returns:
            Candidates ordered best first
        """
        pass


class BaseChunker(ABC):
    """Abstract base class for chunk boundary detectors.

    Chunkers split documents into smaller pieces for indexing.
    """

    @abstractmethod
    def chunk(self, document: "Document") -> list["Chunk"]:
        """Split a document into chunks.

        Args:
            document: Document to chunk

        Returns:
            List of chunks, without embeddings
        """
        pass


class BaseReranker(ABC):
    """Abstract base class for rerankers.

    Rerankers reorder candidates to improve relevance.
    """

    @abstractmethod
    async def rerank(
        self,
        query: str,
        candidates: list["RetrievalCandidate"],
        top_k: int = 5,
    ) -> list["RetrievalCandidate"]:
        """Rerank candidates.

        Args:
            query: Original query string
            candidates: Candidates to rerank
            top_k: Number of results to return

        Returns:
            Reranked candidates
        """
        pass
