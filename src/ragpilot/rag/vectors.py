"""Vector math for embeddings: similarity and pooling."""

import math
from typing import Callable, Optional

from ragpilot.exceptions import EmbeddingDimensionMismatch
from ragpilot.utils.config import PoolingStrategy


def check_dimensions(vectors: list[list[float]], expected: Optional[int] = None) -> int:
    """Ensure all vectors share one dimension and return it.

    Raises:
        EmbeddingDimensionMismatch: If any vector differs from ``expected``
            (or from the first vector when ``expected`` is None).
    """
    if not vectors:
        return expected or 0

    dimension = expected if expected is not None else len(vectors[0])
    for vector in vectors:
        if len(vector) != dimension:
            raise EmbeddingDimensionMismatch(dimension, len(vector))
    return dimension


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Calculate cosine similarity between two vectors.

    Returns 0.0 when either vector has zero norm.
    """
    if len(a) != len(b):
        raise EmbeddingDimensionMismatch(len(a), len(b))

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def mean_pool(vectors: list[list[float]], weights: Optional[list[float]] = None) -> list[float]:
    """Element-wise arithmetic mean. ``weights`` is ignored."""
    dimension = check_dimensions(vectors)
    if not vectors:
        return []

    count = len(vectors)
    return [sum(v[i] for v in vectors) / count for i in range(dimension)]


def max_pool(vectors: list[list[float]], weights: Optional[list[float]] = None) -> list[float]:
    """Element-wise maximum. ``weights`` is ignored."""
    dimension = check_dimensions(vectors)
    if not vectors:
        return []

    return [max(v[i] for v in vectors) for i in range(dimension)]


def weighted_pool(vectors: list[list[float]], weights: Optional[list[float]] = None) -> list[float]:
    """Weighted average; falls back to the mean when weights sum to zero."""
    dimension = check_dimensions(vectors)
    if not vectors:
        return []

    if weights is None:
        return mean_pool(vectors)
    if len(weights) != len(vectors):
        raise ValueError("Number of weights must match number of vectors")

    total = sum(weights)
    if total <= 0:
        return mean_pool(vectors)

    return [
        sum(w * v[i] for w, v in zip(weights, vectors)) / total
        for i in range(dimension)
    ]


PoolingFunction = Callable[[list[list[float]], Optional[list[float]]], list[float]]

POOLING_STRATEGIES: dict[PoolingStrategy, PoolingFunction] = {
    PoolingStrategy.MEAN: mean_pool,
    PoolingStrategy.MAX: max_pool,
    PoolingStrategy.WEIGHTED: weighted_pool,
}


def pool(
    vectors: list[list[float]],
    strategy: PoolingStrategy,
    weights: Optional[list[float]] = None,
) -> list[float]:
    """Pool ``vectors`` with the given strategy."""
    return POOLING_STRATEGIES[PoolingStrategy(strategy)](vectors, weights)
