"""
Configuration utilities.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ragpilot.exceptions import ConfigurationError


class PoolingStrategy(str, Enum):
    """How segment embeddings are collapsed into one chunk embedding."""
    MEAN = "mean"
    MAX = "max"
    WEIGHTED = "weighted"


def _check_unit_interval(value: float) -> float:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"must be between 0 and 1, got {value}")
    return value


class FrozenConfig(BaseModel):
    """Immutable configuration base."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def create(cls, **data: Any):
        """Build the config, raising ConfigurationError on invalid values."""
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {cls.__name__}: {e}") from e


class LateChunkingConfig(FrozenConfig):
    """Configuration for the late-chunking engine."""
    pooling_strategy: PoolingStrategy = PoolingStrategy.WEIGHTED
    validate_with_embedding: bool = True
    # 8191 is the provider limit; keep a safety margin
    max_tokens_per_segment: int = Field(default=8000, gt=0)
    embedding_timeout: float = Field(default=30.0, gt=0)
    max_concurrency: int = Field(default=4, ge=1)
    batch_size: int = Field(default=16, ge=1)


class QualityConfig(FrozenConfig):
    """Quality scoring and auto-approval configuration."""
    min_quality_score: int = Field(default=85, ge=0, le=100)
    auto_approval_enabled: bool = True

    # Embedding validation blend
    low_similarity: float = 0.5
    weak_similarity: float = 0.7
    high_similarity: float = 0.9
    low_similarity_penalty: int = -15
    weak_similarity_penalty: int = -5
    high_similarity_bonus: int = 5

    @model_validator(mode="after")
    def _check_bands(self) -> "QualityConfig":
        if not self.low_similarity <= self.weak_similarity <= self.high_similarity:
            raise ValueError("similarity bands must satisfy low <= weak <= high")
        return self


class RetrievalConfig(FrozenConfig):
    """Hybrid retrieval configuration."""
    rrf_k: int = Field(default=60, gt=0)
    candidate_multiplier: int = Field(default=2, ge=1)
    search_timeout: float = Field(default=10.0, gt=0)


class RerankerConfig(FrozenConfig):
    """LLM reranker configuration."""
    model: str = "gpt-4o-mini"
    top_k: int = Field(default=5, ge=1)
    max_chars_per_doc: int = Field(default=300, gt=0)
    default_score: float = Field(default=3.0, ge=1, le=10)
    timeout: float = Field(default=10.0, gt=0)
    max_tokens: int = Field(default=500, gt=0)
    relevance_threshold: float = 0.7
    min_score_spread: float = Field(default=0.1, ge=0)
    always_rerank: bool = False


class RouterConfig(FrozenConfig):
    """Confidence thresholds for query routing.

    Attributes:
        chitchat_threshold: Minimum confidence to answer CHITCHAT directly
        out_of_scope_threshold: Minimum confidence to consider declining
        rag_reverify_threshold: Dense score that overrides an OUT_OF_SCOPE guess
        rag_decline_threshold: Dense score below which retrieval is not trusted
    """
    chitchat_threshold: float = 0.85
    out_of_scope_threshold: float = 0.85
    rag_reverify_threshold: float = 0.5
    rag_decline_threshold: float = 0.3

    @field_validator(
        "chitchat_threshold",
        "out_of_scope_threshold",
        "rag_reverify_threshold",
        "rag_decline_threshold",
    )
    @classmethod
    def check_thresholds(cls, value: float) -> float:
        return _check_unit_interval(value)

    @model_validator(mode="after")
    def _check_order(self) -> "RouterConfig":
        if self.rag_decline_threshold > self.rag_reverify_threshold:
            raise ValueError("rag_decline_threshold must not exceed rag_reverify_threshold")
        return self


class LLMConfig(FrozenConfig):
    """Settings for the small LLM calls (intent, small talk, decline)."""
    model: str = "gpt-4o-mini"
    llm_timeout: float = Field(default=10.0, gt=0)
    history_limit: int = Field(default=4, ge=0)


class RAGConfig(FrozenConfig):
    """Top-level configuration for the RAG pipeline."""
    late_chunking: LateChunkingConfig = Field(default_factory=LateChunkingConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    reranker: RerankerConfig = Field(default_factory=RerankerConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "RAGConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.create(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> "RAGConfig":
        """Load configuration from file (YAML or JSON)."""
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        elif path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls.create(**data)
        else:
            raise ConfigurationError(f"Unsupported config file format: {path.suffix}")


def load_config(path: str | Path = "ragpilot.yaml") -> RAGConfig:
    """
    Load pipeline configuration from file.

    Args:
        path: Path to config file

    Returns:
        RAGConfig instance (defaults if the file does not exist)
    """
    path = Path(path)

    if not path.exists():
        return RAGConfig()

    return RAGConfig.from_file(path)
