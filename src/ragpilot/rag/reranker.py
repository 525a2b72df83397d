"""Reranker implementations."""

import json
import logging
import re
from typing import TYPE_CHECKING, Optional

from ragpilot.exceptions import LLMError
from ragpilot.providers.base import complete_text
from ragpilot.utils.config import RerankerConfig

from .base import BaseReranker
from .document import RetrievalCandidate

if TYPE_CHECKING:
    from ragpilot.providers.base import LLMProvider

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class IdentityReranker(BaseReranker):
    """Identity reranker that doesn't change the order.

    Useful as a default when no reranking is needed.
    """

    async def rerank(
        self,
        query: str,
        candidates: list[RetrievalCandidate],
        top_k: int = 5,
    ) -> list[RetrievalCandidate]:
        """Return candidates unchanged, limited to top_k."""
        return candidates[:top_k]


def parse_rerank_scores(
    text: str,
    expected_count: int,
    default_score: float = 3,
) -> Optional[list[float]]:
    """Parse ``[{"index": i, "score": s}, ...]`` out of an LLM reply.

    Entries with an out-of-range index or a score outside 1-10 are
    dropped; documents the model skipped get ``default_score``.

    Returns:
        One score per document, in document order, or None if no JSON
        array could be parsed.
    """
    if not text:
        return None

    match = _JSON_ARRAY.search(text)
    if not match:
        return None

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None

    if not isinstance(parsed, list):
        return None

    scores: dict[int, float] = {}
    for item in parsed:
        if not isinstance(item, dict):
            continue
        index = item.get("index")
        score = item.get("score")
        # bool is an int subclass
        if isinstance(index, bool) or not isinstance(index, int):
            continue
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        if not 0 <= index < expected_count or not 1 <= score <= 10:
            continue
        scores.setdefault(index, float(score))

    return [scores.get(i, float(default_score)) for i in range(expected_count)]


def should_rerank(
    candidates: list[RetrievalCandidate],
    threshold: float = 0.7,
    min_spread: float = 0.1,
) -> bool:
    """Decide whether LLM reranking is worth its cost.

    Reranking helps when the best match is weak or when the top five
    are too close to tell apart. A missing dense score falls back to
    the fused score.
    """
    if len(candidates) <= 3:
        return False

    def dense(c: RetrievalCandidate) -> float:
        return c.dense_score if c.dense_score is not None else c.score

    if dense(candidates[0]) < threshold:
        return True

    top_scores = [dense(c) for c in candidates[:5]]
    return max(top_scores) - min(top_scores) < min_spread


class LLMReranker(BaseReranker):
    """Reranker using an LLM to evaluate relevance.

    All candidates are scored 1-10 in a single call. Any failure (provider
    error, timeout, unparseable reply) returns the candidates in their
    original order, truncated to ``top_k``.
    """

    SYSTEM_PROMPT = """You evaluate how relevant search results are to a question.

Rate each document from 1 to 10:
- 10: directly and completely answers the question
- 7-9: contains useful related information
- 4-6: partially related but not a direct answer
- 1-3: barely related

Respond with a JSON array only, no explanation:
[{"index": 0, "score": 8}, {"index": 1, "score": 5}, ...]"""

    USER_PROMPT = """## Question
{query}

## Documents
{documents}

## Scores (JSON array):"""

    def __init__(
        self,
        llm_provider: "LLMProvider",
        config: RerankerConfig = RerankerConfig(),
    ):
        """Initialize the LLM reranker.

        Args:
            llm_provider: LLM provider for scoring
            config: Model, truncation, timeout and fallback settings
        """
        self.llm_provider = llm_provider
        self.config = config

    def _build_prompt(self, query: str, candidates: list[RetrievalCandidate]) -> str:
        limit = self.config.max_chars_per_doc
        documents = []
        for i, candidate in enumerate(candidates):
            content = candidate.chunk.content
            if len(content) > limit:
                content = content[:limit] + "..."
            documents.append(f"[{i}] {content}")

        return self.USER_PROMPT.format(query=query, documents="\n\n".join(documents))

    async def rerank(
        self,
        query: str,
        candidates: list[RetrievalCandidate],
        top_k: int = 5,
    ) -> list[RetrievalCandidate]:
        """Rerank candidates using LLM scoring."""
        if len(candidates) <= top_k:
            return list(candidates)

        try:
            reply = await complete_text(
                self.llm_provider,
                self._build_prompt(query, candidates),
                model=self.config.model,
                system=self.SYSTEM_PROMPT,
                temperature=0.0,
                max_tokens=self.config.max_tokens,
                timeout=self.config.timeout,
            )
        except LLMError as e:
            logger.warning(f"Reranking failed, keeping original order: {e.message}")
            return candidates[:top_k]

        scores = parse_rerank_scores(reply, len(candidates), self.config.default_score)
        if scores is None:
            logger.warning(f"Could not parse rerank scores, keeping original order: {reply[:200]!r}")
            return candidates[:top_k]

        # sorted() is stable, so equal scores keep their retrieval order
        order = sorted(range(len(candidates)), key=lambda i: scores[i], reverse=True)
        reranked = [
            candidates[i].model_copy(update={"rerank_score": scores[i]})
            for i in order[:top_k]
        ]

        logger.info(
            f"Reranked {len(candidates)} candidates to {len(reranked)} "
            f"(top scores: {[c.rerank_score for c in reranked[:3]]})"
        )
        return reranked
