"""
Query routing: decide between a direct reply and retrieval-augmented answering.

``decide_route`` is the pure decision table; ``QueryRouter`` wires it to
the retriever, the reranker and the response generator.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ragpilot.rag.base import BaseReranker
from ragpilot.rag.document import RetrievalCandidate
from ragpilot.rag.reranker import should_rerank
from ragpilot.rag.retriever import HybridRetriever, top_dense_score
from ragpilot.utils.config import RerankerConfig, RouterConfig
from ragpilot.utils.logging import get_logger

from .intent import DEFAULT_PERSONA, Intent, IntentResult, PersonaConfig
from .responses import ResponseGenerator

logger = get_logger(__name__)


class Route(str, Enum):
    """Path a message takes through the router."""
    CHITCHAT_TEMPLATE = "chitchat_template"
    CHITCHAT_LLM = "chitchat_llm"
    OUT_OF_SCOPE_DECLINE = "out_of_scope_decline"
    NO_RESULT = "no_result"
    RAG = "rag"


class RouteDecision(BaseModel):
    """Outcome of the routing decision table."""
    route: Route
    intent: Intent
    confidence: float
    reasoning: str

    @property
    def should_use_rag(self) -> bool:
        return self.route == Route.RAG


class RouterResult(BaseModel):
    """What the chat layer needs to answer one message."""
    should_use_rag: bool
    response: Optional[str] = None
    intent: Intent
    confidence: float
    reasoning: str
    route: Route
    top_dense_score: float = 0.0
    evidence: list[RetrievalCandidate] = Field(default_factory=list)


def skips_retrieval(intent_result: IntentResult, config: RouterConfig = RouterConfig()) -> bool:
    """Confident small talk never needs retrieval."""
    return (
        intent_result.intent == Intent.CHITCHAT
        and intent_result.confidence >= config.chitchat_threshold
    )


def decide_route(
    intent_result: IntentResult,
    top_dense_score: float,
    has_results: bool,
    config: RouterConfig = RouterConfig(),
) -> RouteDecision:
    """
    Apply the routing rules in order.

    1. Confident CHITCHAT is answered directly (template if a rule matched).
    2. Confident OUT_OF_SCOPE is declined unless retrieval found a strong
       match, in which case the message is treated as a domain query.
    3. Everything else uses retrieval when it found something above the
       decline threshold, and says "no information" otherwise.

    Args:
        intent_result: Classifier output
        top_dense_score: Best cosine similarity among retrieved chunks
        has_results: Whether retrieval returned anything
        config: Thresholds

    Returns:
        RouteDecision
    """
    if skips_retrieval(intent_result, config):
        route = Route.CHITCHAT_TEMPLATE if intent_result.rules_match else Route.CHITCHAT_LLM
        return RouteDecision(
            route=route,
            intent=Intent.CHITCHAT,
            confidence=intent_result.confidence,
            reasoning="CHITCHAT with high confidence",
        )

    if (
        intent_result.intent == Intent.OUT_OF_SCOPE
        and intent_result.confidence >= config.out_of_scope_threshold
    ):
        if has_results and top_dense_score >= config.rag_reverify_threshold:
            return RouteDecision(
                route=Route.RAG,
                intent=Intent.DOMAIN_QUERY,
                confidence=top_dense_score,
                reasoning=(
                    f"OUT_OF_SCOPE but RAG found relevant content "
                    f"(denseScore: {top_dense_score:.2f})"
                ),
            )
        return RouteDecision(
            route=Route.OUT_OF_SCOPE_DECLINE,
            intent=Intent.OUT_OF_SCOPE,
            confidence=intent_result.confidence,
            reasoning=f"OUT_OF_SCOPE confirmed by low RAG score (denseScore: {top_dense_score:.2f})",
        )

    if not has_results or top_dense_score < config.rag_decline_threshold:
        return RouteDecision(
            route=Route.NO_RESULT,
            intent=intent_result.intent,
            confidence=intent_result.confidence,
            reasoning=(
                f"No relevant RAG results (denseScore: {top_dense_score:.2f} "
                f"< {config.rag_decline_threshold})"
            ),
        )

    return RouteDecision(
        route=Route.RAG,
        intent=intent_result.intent,
        confidence=intent_result.confidence,
        reasoning=f"DOMAIN_QUERY with RAG results (denseScore: {top_dense_score:.2f})",
    )


class QueryRouter:
    """
    Route a classified message to a reply or to retrieved evidence.

    Example:
        ```python
        router = QueryRouter(HybridRetriever(dense, sparse), LLMReranker(provider))
        result = await router.route("What is the refund policy?", intent)
        if result.should_use_rag:
            answer = await generate(result.evidence)
        ```
    """

    def __init__(
        self,
        retriever: HybridRetriever,
        reranker: Optional[BaseReranker] = None,
        responder: Optional[ResponseGenerator] = None,
        config: RouterConfig = RouterConfig(),
        reranker_config: RerankerConfig = RerankerConfig(),
    ):
        self.retriever = retriever
        self.reranker = reranker
        self.responder = responder or ResponseGenerator()
        self.config = config
        self.reranker_config = reranker_config

    async def _retrieve(self, message: str, limit: int) -> list[RetrievalCandidate]:
        try:
            return await self.retriever.retrieve(message, limit)
        except Exception as e:
            logger.warning(f"Retrieval failed, treating as no results: {e}")
            return []

    async def _rerank(
        self,
        message: str,
        candidates: list[RetrievalCandidate],
        limit: int,
    ) -> list[RetrievalCandidate]:
        if self.reranker is None:
            return candidates[:limit]

        wanted = self.reranker_config.always_rerank or should_rerank(
            candidates,
            threshold=self.reranker_config.relevance_threshold,
            min_spread=self.reranker_config.min_score_spread,
        )
        if not wanted:
            return candidates[:limit]

        return await self.reranker.rerank(message, candidates, top_k=limit)

    async def route(
        self,
        message: str,
        intent_result: IntentResult,
        persona: PersonaConfig = DEFAULT_PERSONA,
        limit: int = 5,
    ) -> RouterResult:
        """
        Route one message.

        Retrieval runs unless the message is confident small talk. When
        the result is RAG, ``evidence`` holds the (possibly reranked)
        candidates for the answer generator.
        """
        candidates: list[RetrievalCandidate] = []
        if not skips_retrieval(intent_result, self.config):
            # Fetch extra candidates so the reranker has something to choose from
            fetch = limit * 3 if self.reranker is not None else limit
            candidates = await self._retrieve(message, fetch)

        dense = top_dense_score(candidates)
        decision = decide_route(intent_result, dense, bool(candidates), self.config)

        response = None
        evidence: list[RetrievalCandidate] = []

        if decision.route == Route.CHITCHAT_TEMPLATE:
            response = self.responder.template_response(message)
        elif decision.route == Route.CHITCHAT_LLM:
            response = await self.responder.chitchat_response(message, persona)
        elif decision.route == Route.OUT_OF_SCOPE_DECLINE:
            response = await self.responder.decline_response(message, persona)
        elif decision.route == Route.NO_RESULT:
            response = self.responder.no_result_response(persona, message)
        else:
            evidence = await self._rerank(message, candidates, limit)

        logger.info(
            f"Query routed to {decision.route.value} "
            f"(intent={decision.intent.value}, denseScore={dense:.2f}): {message[:50]!r}"
        )

        return RouterResult(
            should_use_rag=decision.should_use_rag,
            response=response,
            intent=decision.intent,
            confidence=decision.confidence,
            reasoning=decision.reasoning,
            route=decision.route,
            top_dense_score=dense,
            evidence=evidence,
        )
