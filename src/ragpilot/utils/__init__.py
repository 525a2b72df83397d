"""
Shared utilities: configuration and logging.
"""

from ragpilot.utils.config import (
    LateChunkingConfig,
    LLMConfig,
    PoolingStrategy,
    QualityConfig,
    RAGConfig,
    RerankerConfig,
    RetrievalConfig,
    RouterConfig,
    load_config,
)
from ragpilot.utils.logging import get_logger, set_log_level

__all__ = [
    "LateChunkingConfig",
    "LLMConfig",
    "PoolingStrategy",
    "QualityConfig",
    "RAGConfig",
    "RerankerConfig",
    "RetrievalConfig",
    "RouterConfig",
    "load_config",
    "get_logger",
    "set_log_level",
]
