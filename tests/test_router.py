"""Tests for query routing."""

from unittest.mock import AsyncMock

import pytest

from conftest import make_candidate, make_provider
from ragpilot.chat.intent import Intent, IntentResult
from ragpilot.chat.responses import CHITCHAT_TEMPLATES, ResponseGenerator
from ragpilot.chat.router import QueryRouter, Route, decide_route
from ragpilot.rag.base import BaseReranker
from ragpilot.rag.retriever import HybridRetriever
from ragpilot.utils.config import RerankerConfig, RouterConfig


def intent(kind, confidence, rules_match=False):
    return IntentResult(intent=kind, confidence=confidence, rules_match=rules_match)


def retriever_returning(candidates):
    retriever = AsyncMock(spec=HybridRetriever)
    retriever.retrieve.return_value = candidates
    return retriever


class TestDecideRoute:
    """Table-driven tests for the routing rules."""

    @pytest.mark.parametrize("intent_result,dense,has_results,route,final_intent", [
        # Confident small talk never looks at retrieval
        (intent(Intent.CHITCHAT, 0.95, True), 0.0, False, Route.CHITCHAT_TEMPLATE, Intent.CHITCHAT),
        (intent(Intent.CHITCHAT, 0.9), 0.9, True, Route.CHITCHAT_LLM, Intent.CHITCHAT),
        # Unsure small talk is treated like any other query
        (intent(Intent.CHITCHAT, 0.6), 0.7, True, Route.RAG, Intent.CHITCHAT),
        (intent(Intent.CHITCHAT, 0.6), 0.1, True, Route.NO_RESULT, Intent.CHITCHAT),
        # Out of scope, unless retrieval disagrees
        (intent(Intent.OUT_OF_SCOPE, 0.9), 0.6, True, Route.RAG, Intent.DOMAIN_QUERY),
        (intent(Intent.OUT_OF_SCOPE, 0.9), 0.5, True, Route.RAG, Intent.DOMAIN_QUERY),
        (intent(Intent.OUT_OF_SCOPE, 0.9), 0.49, True, Route.OUT_OF_SCOPE_DECLINE, Intent.OUT_OF_SCOPE),
        (intent(Intent.OUT_OF_SCOPE, 0.9), 0.0, False, Route.OUT_OF_SCOPE_DECLINE, Intent.OUT_OF_SCOPE),
        (intent(Intent.OUT_OF_SCOPE, 0.7), 0.4, True, Route.RAG, Intent.OUT_OF_SCOPE),
        # Domain queries depend on the dense score
        (intent(Intent.DOMAIN_QUERY, 0.8), 0.0, False, Route.NO_RESULT, Intent.DOMAIN_QUERY),
        (intent(Intent.DOMAIN_QUERY, 0.8), 0.29, True, Route.NO_RESULT, Intent.DOMAIN_QUERY),
        (intent(Intent.DOMAIN_QUERY, 0.8), 0.3, True, Route.RAG, Intent.DOMAIN_QUERY),
        (intent(Intent.DOMAIN_QUERY, 0.5), 0.9, True, Route.RAG, Intent.DOMAIN_QUERY),
    ])
    def test_routing_table(self, intent_result, dense, has_results, route, final_intent):
        decision = decide_route(intent_result, dense, has_results)

        assert decision.route == route
        assert decision.intent == final_intent
        assert decision.should_use_rag == (route == Route.RAG)

    def test_reverified_confidence_is_dense_score(self):
        decision = decide_route(intent(Intent.OUT_OF_SCOPE, 0.9), 0.63, True)

        assert decision.confidence == 0.63
        assert decision.reasoning == (
            "OUT_OF_SCOPE but RAG found relevant content (denseScore: 0.63)"
        )

    def test_reasoning_strings(self):
        assert decide_route(intent(Intent.CHITCHAT, 0.9), 0.0, False).reasoning == (
            "CHITCHAT with high confidence"
        )
        assert decide_route(intent(Intent.OUT_OF_SCOPE, 0.9), 0.2, True).reasoning == (
            "OUT_OF_SCOPE confirmed by low RAG score (denseScore: 0.20)"
        )
        assert decide_route(intent(Intent.DOMAIN_QUERY, 0.8), 0.1, True).reasoning == (
            "No relevant RAG results (denseScore: 0.10 < 0.3)"
        )
        assert decide_route(intent(Intent.DOMAIN_QUERY, 0.8), 0.75, True).reasoning == (
            "DOMAIN_QUERY with RAG results (denseScore: 0.75)"
        )

    def test_custom_thresholds(self):
        config = RouterConfig(rag_decline_threshold=0.5, rag_reverify_threshold=0.8)

        assert decide_route(intent(Intent.DOMAIN_QUERY, 0.8), 0.45, True, config).route == \
            Route.NO_RESULT
        assert decide_route(intent(Intent.OUT_OF_SCOPE, 0.9), 0.7, True, config).route == \
            Route.OUT_OF_SCOPE_DECLINE


class TestQueryRouter:
    """Tests for QueryRouter.route."""

    @pytest.mark.asyncio
    async def test_confident_chitchat_skips_retrieval(self):
        retriever = retriever_returning([make_candidate("a", dense_score=0.9)])
        router = QueryRouter(retriever)

        result = await router.route("hello", intent(Intent.CHITCHAT, 0.9, rules_match=True))

        assert not result.should_use_rag
        assert result.route == Route.CHITCHAT_TEMPLATE
        assert result.response in CHITCHAT_TEMPLATES["en"]["greeting"]
        retriever.retrieve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_llm_chitchat(self):
        provider = make_provider("Doing great, thanks for asking!")
        router = QueryRouter(retriever_returning([]), responder=ResponseGenerator(provider))

        result = await router.route("how is your day going", intent(Intent.CHITCHAT, 0.9))

        assert result.route == Route.CHITCHAT_LLM
        assert result.response == "Doing great, thanks for asking!"

    @pytest.mark.asyncio
    async def test_out_of_scope_reverified_by_retrieval(self):
        candidates = [make_candidate("a", dense_score=0.6), make_candidate("b", dense_score=0.4)]
        router = QueryRouter(retriever_returning(candidates))

        result = await router.route("How do refunds work in Python shops?", intent(Intent.OUT_OF_SCOPE, 0.9))

        assert result.should_use_rag
        assert result.intent == Intent.DOMAIN_QUERY
        assert result.response is None
        assert result.top_dense_score == 0.6
        assert [c.chunk.id for c in result.evidence] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_out_of_scope_declined(self):
        router = QueryRouter(retriever_returning([make_candidate("a", dense_score=0.2)]))

        result = await router.route("What's the weather?", intent(Intent.OUT_OF_SCOPE, 0.9))

        assert not result.should_use_rag
        assert result.route == Route.OUT_OF_SCOPE_DECLINE
        assert result.response.startswith("That's outside my area of expertise")
        assert result.evidence == []

    @pytest.mark.asyncio
    async def test_empty_retrieval_gives_no_result(self):
        router = QueryRouter(retriever_returning([]))

        result = await router.route("환불 규정이 어떻게 되나요?", intent(Intent.DOMAIN_QUERY, 0.8))

        assert not result.should_use_rag
        assert result.route == Route.NO_RESULT
        assert result.response.startswith("죄송해요, 관련 정보를 찾지 못했어요.")
        assert "0.3" in result.reasoning

    @pytest.mark.asyncio
    async def test_retrieval_failure_is_no_result(self):
        retriever = AsyncMock(spec=HybridRetriever)
        retriever.retrieve.side_effect = RuntimeError("index offline")

        result = await QueryRouter(retriever).route(
            "What is the refund policy?", intent(Intent.DOMAIN_QUERY, 0.8)
        )

        assert result.route == Route.NO_RESULT

    @pytest.mark.asyncio
    async def test_rag_without_reranker(self):
        candidates = [make_candidate(f"c{i}", dense_score=0.9 - i * 0.1) for i in range(3)]
        retriever = retriever_returning(candidates)

        result = await QueryRouter(retriever).route(
            "What is the refund policy?", intent(Intent.DOMAIN_QUERY, 0.8), limit=2
        )

        retriever.retrieve.assert_awaited_once_with("What is the refund policy?", 2)
        assert result.route == Route.RAG
        assert [c.chunk.id for c in result.evidence] == ["c0", "c1"]

    @pytest.mark.asyncio
    async def test_reranks_weak_results(self):
        candidates = [make_candidate(f"c{i}", dense_score=0.6 - i * 0.05) for i in range(6)]
        retriever = retriever_returning(candidates)
        reranker = AsyncMock(spec=BaseReranker)
        reranker.rerank.return_value = list(reversed(candidates))[:2]

        result = await QueryRouter(retriever, reranker=reranker).route(
            "refund policy", intent(Intent.DOMAIN_QUERY, 0.8), limit=2
        )

        retriever.retrieve.assert_awaited_once_with("refund policy", 6)
        reranker.rerank.assert_awaited_once()
        assert [c.chunk.id for c in result.evidence] == ["c5", "c4"]

    @pytest.mark.asyncio
    async def test_skips_rerank_for_clear_winner(self):
        candidates = [make_candidate(f"c{i}", dense_score=0.95 - i * 0.1) for i in range(6)]
        reranker = AsyncMock(spec=BaseReranker)

        result = await QueryRouter(retriever_returning(candidates), reranker=reranker).route(
            "refund policy", intent(Intent.DOMAIN_QUERY, 0.8), limit=3
        )

        reranker.rerank.assert_not_awaited()
        assert [c.chunk.id for c in result.evidence] == ["c0", "c1", "c2"]

    @pytest.mark.asyncio
    async def test_always_rerank(self):
        candidates = [make_candidate(f"c{i}", dense_score=0.95 - i * 0.1) for i in range(6)]
        reranker = AsyncMock(spec=BaseReranker)
        reranker.rerank.return_value = candidates[:1]

        router = QueryRouter(
            retriever_returning(candidates),
            reranker=reranker,
            reranker_config=RerankerConfig(always_rerank=True),
        )
        result = await router.route("refund policy", intent(Intent.DOMAIN_QUERY, 0.8), limit=1)

        reranker.rerank.assert_awaited_once()
        assert len(result.evidence) == 1
