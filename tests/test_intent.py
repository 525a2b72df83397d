"""Tests for intent classification."""

import pytest

from conftest import make_provider
from ragpilot.core.message import Message
from ragpilot.chat.intent import (
    Intent,
    IntentClassifier,
    IntentResult,
    PersonaConfig,
    classify_by_rules,
    parse_intent_result,
)


class TestClassifyByRules:
    """Tests for the regex pre-classifier."""

    @pytest.mark.parametrize("message", ["안녕", "hello!", "고마워!", "좋은 아침~", "ㅋㅋㅋ", "ok", "bye~"])
    def test_chitchat(self, message):
        result = classify_by_rules(message)
        assert result.intent == Intent.CHITCHAT
        assert result.confidence == 0.95
        assert result.rules_match

    @pytest.mark.parametrize("message", [
        "How do I write a Python function?",
        "오늘 날씨 어때?",
        "비트코인 시세 알려줘",
        "ETF 추천해줘",
    ])
    def test_out_of_scope(self, message):
        result = classify_by_rules(message)
        assert result.intent == Intent.OUT_OF_SCOPE
        assert result.confidence == 0.85

    @pytest.mark.parametrize("message", ["환불 규정이 어떻게 되나요?", "What is the refund policy?"])
    def test_no_match(self, message):
        assert classify_by_rules(message) is None

    def test_mixed_greeting_is_not_chitchat(self):
        assert classify_by_rules("안녕하세요, 환불 규정 알려주세요") is None


class TestParseIntentResult:
    """Tests for parse_intent_result."""

    def test_valid_json(self):
        result = parse_intent_result(
            'Sure: {"intent": "OUT_OF_SCOPE", "confidence": 0.92, "reasoning": "weather"}'
        )
        assert result.intent == Intent.OUT_OF_SCOPE
        assert result.confidence == 0.92
        assert result.reasoning == "weather"
        assert not result.rules_match

    def test_unknown_intent(self):
        result = parse_intent_result('{"intent": "SHOPPING", "confidence": 0.9}')
        assert result.intent == Intent.DOMAIN_QUERY

    def test_confidence_default_and_clamp(self):
        assert parse_intent_result('{"intent": "CHITCHAT"}').confidence == 0.7
        assert parse_intent_result('{"intent": "CHITCHAT", "confidence": 1.7}').confidence == 1.0
        assert parse_intent_result('{"intent": "CHITCHAT", "confidence": -2}').confidence == 0.0

    def test_garbage(self):
        result = parse_intent_result("I think it's a question")
        assert result.intent == Intent.DOMAIN_QUERY
        assert result.confidence == 0.6

    def test_intent_result_clamps(self):
        assert IntentResult(intent=Intent.CHITCHAT, confidence=3).confidence == 1.0


class TestIntentClassifier:
    """Tests for IntentClassifier."""

    @pytest.mark.asyncio
    async def test_rules_skip_llm(self):
        provider = make_provider('{"intent": "DOMAIN_QUERY", "confidence": 0.9}')

        result = await IntentClassifier(provider).classify("안녕!")

        assert result.intent == Intent.CHITCHAT
        provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_llm_classification(self):
        provider = make_provider('{"intent": "DOMAIN_QUERY", "confidence": 0.88}')
        persona = PersonaConfig(name="Shop Bot", expertise_area="online orders")
        history = [Message.user("I bought shoes"), Message.assistant("Great!")]

        result = await IntentClassifier(provider, persona).classify(
            "Can I return them?", history
        )

        assert result.intent == Intent.DOMAIN_QUERY
        assert result.confidence == 0.88
        messages = provider.complete.call_args.args[0]
        assert "Shop Bot" in messages[0]["content"]
        assert "online orders" in messages[0]["content"]
        assert "User: I bought shoes" in messages[1]["content"]
        assert "Can I return them?" in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_persona_override(self):
        provider = make_provider('{"intent": "DOMAIN_QUERY", "confidence": 0.8}')
        override = PersonaConfig(name="HR Helper", expertise_area="vacation policy")

        await IntentClassifier(provider).classify("How many days do I get?", persona=override)

        system = provider.complete.call_args.args[0][0]["content"]
        assert "HR Helper" in system
        assert "vacation policy" in system

    @pytest.mark.asyncio
    async def test_no_provider(self):
        result = await IntentClassifier().classify("What is the refund policy?")
        assert result.intent == Intent.DOMAIN_QUERY
        assert result.confidence == 0.5

    @pytest.mark.asyncio
    async def test_provider_failure(self):
        provider = make_provider(side_effect=ConnectionError("down"))

        result = await IntentClassifier(provider).classify("What is the refund policy?")

        assert result.intent == Intent.DOMAIN_QUERY
        assert result.confidence == 0.5
        assert "down" in result.reasoning
