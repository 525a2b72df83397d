"""
RAG pipeline exceptions.
"""


class RAGError(Exception):
    """Base exception for ragpilot errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(RAGError, ValueError):
    """Raised at setup time for invalid configuration values."""


class EmbeddingError(RAGError):
    """Base exception for embedding failures."""


class EmbeddingDimensionMismatch(EmbeddingError):
    """Raised when vectors that must share a dimension do not."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )


class EmbeddingProviderError(EmbeddingError):
    """Raised when the embedding provider fails or times out."""


class LLMError(RAGError):
    """Raised when an LLM call fails or returns no usable text."""
