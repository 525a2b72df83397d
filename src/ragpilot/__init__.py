"""
ragpilot - late-chunking RAG preparation and query routing for chatbots.
"""

from ragpilot.chat import (
    Intent,
    IntentClassifier,
    IntentResult,
    PersonaConfig,
    QueryRouter,
    ResponseGenerator,
    Route,
    RouterResult,
    decide_route,
)
from ragpilot.core.message import Message, Role
from ragpilot.exceptions import (
    ConfigurationError,
    EmbeddingDimensionMismatch,
    EmbeddingError,
    EmbeddingProviderError,
    LLMError,
    RAGError,
)
from ragpilot.pipeline import RAGPipeline
from ragpilot.rag import (
    Chunk,
    ChunkStatus,
    Document,
    FakeEmbedding,
    HybridRetriever,
    KeywordRetriever,
    LateChunker,
    LLMReranker,
    LocalEmbedding,
    MemoryVectorStore,
    OpenAIEmbedding,
    RetrievalCandidate,
    StructuralChunker,
    VectorRetriever,
)
from ragpilot.utils.config import RAGConfig, load_config

__version__ = "0.1.0"
__all__ = [
    # Pipeline
    "RAGPipeline",
    "RAGConfig",
    "load_config",
    # Core
    "Message",
    "Role",
    # Chat
    "Intent",
    "IntentClassifier",
    "IntentResult",
    "PersonaConfig",
    "QueryRouter",
    "ResponseGenerator",
    "Route",
    "RouterResult",
    "decide_route",
    # RAG
    "Chunk",
    "ChunkStatus",
    "Document",
    "FakeEmbedding",
    "HybridRetriever",
    "KeywordRetriever",
    "LateChunker",
    "LLMReranker",
    "LocalEmbedding",
    "MemoryVectorStore",
    "OpenAIEmbedding",
    "RetrievalCandidate",
    "StructuralChunker",
    "VectorRetriever",
    # Errors
    "ConfigurationError",
    "EmbeddingDimensionMismatch",
    "EmbeddingError",
    "EmbeddingProviderError",
    "LLMError",
    "RAGError",
]
