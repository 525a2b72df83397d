"""
Tests for LLM providers and the single-turn completion helper.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_provider
from ragpilot.core.message import Message, Role, format_history
from ragpilot.exceptions import LLMError
from ragpilot.providers import (
    AnthropicProvider,
    FallbackProvider,
    LLMResponse,
    OpenAIProvider,
    complete_text,
)


class TestMessage:
    """Tests for Message and history formatting."""

    def test_constructors(self):
        assert Message.system("s").role == Role.SYSTEM
        assert Message.user("u").to_api_format() == {"role": "user", "content": "u"}

    def test_format_history(self):
        history = [
            Message.user("first"),
            Message.assistant("one"),
            Message.user("second"),
            Message.assistant("two"),
            Message.user("third"),
        ]

        rendered = format_history(history, limit=4)

        assert rendered.splitlines() == [
            "Assistant: one",
            "User: second",
            "Assistant: two",
            "User: third",
        ]

    def test_format_empty_history(self):
        assert format_history([]) == "(no previous conversation)"


class TestLLMResponse:
    """Tests for the provider response shape."""

    def test_from_text(self):
        response = LLMResponse.from_text("hi", prompt_tokens=3, completion_tokens=2).to_dict()

        assert response["message"].role == Role.ASSISTANT
        assert response["message"].content == "hi"
        assert response["usage"] == {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5}
        assert response["finish_reason"] == "stop"

    def test_empty_text_has_no_message(self):
        response = LLMResponse.from_text("", finish_reason="max_tokens").to_dict()

        assert response["message"] is None
        assert response["finish_reason"] == "max_tokens"


class TestCompleteText:
    """Tests for complete_text."""

    @pytest.mark.asyncio
    async def test_returns_stripped_text(self):
        provider = make_provider("  answer \n")

        text = await complete_text(provider, "question", model="m", system="be brief")

        assert text == "answer"
        messages = provider.complete.call_args.args[0]
        assert messages == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "question"},
        ]
        assert provider.complete.call_args.kwargs["model"] == "m"

    @pytest.mark.asyncio
    async def test_provider_error(self):
        provider = make_provider(side_effect=ValueError("bad key"))

        with pytest.raises(LLMError, match="bad key"):
            await complete_text(provider, "q", model="m")

    @pytest.mark.asyncio
    async def test_empty_response(self):
        provider = make_provider()
        provider.complete.return_value = {"message": None, "usage": {}, "finish_reason": "stop"}

        with pytest.raises(LLMError, match="empty"):
            await complete_text(provider, "q", model="m")

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        provider = make_provider(side_effect=slow)

        with pytest.raises(LLMError, match="timed out"):
            await complete_text(provider, "q", model="m", timeout=0.01)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        provider = make_provider(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await complete_text(provider, "q", model="m")


class TestFallbackProvider:
    """Tests for FallbackProvider."""

    def test_requires_providers(self):
        with pytest.raises(ValueError):
            FallbackProvider([])

    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        first = make_provider("from first")
        second = make_provider("from second")

        response = await FallbackProvider([(first, "model-a"), (second, "model-b")]).complete(
            [{"role": "user", "content": "hi"}]
        )

        assert response["message"].content == "from first"
        assert first.complete.call_args.kwargs["model"] == "model-a"
        second.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_through_errors_and_empty_replies(self):
        failing = make_provider(side_effect=RuntimeError("quota"))
        empty = make_provider()
        empty.complete.return_value = {"message": None, "usage": {}, "finish_reason": "stop"}
        working = make_provider("finally")

        fallback = FallbackProvider([(failing, "a"), (empty, "b"), (working, "c")])
        response = await fallback.complete([], model="ignored")

        assert response["message"].content == "finally"
        assert working.complete.call_args.kwargs["model"] == "c"
        assert fallback.get_available_models() == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_all_fail(self):
        fallback = FallbackProvider([
            (make_provider(side_effect=RuntimeError("quota")), "a"),
            (make_provider(side_effect=TimeoutError()), "b"),
        ])

        with pytest.raises(LLMError, match="All providers failed"):
            await fallback.complete([])

    @pytest.mark.asyncio
    async def test_works_with_complete_text(self):
        fallback = FallbackProvider([
            (make_provider(side_effect=RuntimeError("down")), "a"),
            (make_provider("ok"), "b"),
        ])

        assert await complete_text(fallback, "q", model="unused") == "ok"


class TestOpenAIProvider:
    """Tests for OpenAIProvider with a stubbed client."""

    @pytest.mark.asyncio
    async def test_complete(self):
        provider = OpenAIProvider(api_key="test")
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(
                message=SimpleNamespace(content="Hello"),
                finish_reason="stop",
            )],
            usage=SimpleNamespace(prompt_tokens=3, completion_tokens=1, total_tokens=4),
        ))
        provider._client = client

        response = await provider.complete(
            [{"role": "user", "content": "hi"}], model="gpt-4o-mini", max_tokens=10
        )

        assert response["message"].content == "Hello"
        assert response["usage"]["total_tokens"] == 4
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_empty_content(self):
        provider = OpenAIProvider()
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None), finish_reason=None)],
            usage=None,
        ))
        provider._client = client

        response = await provider.complete([], model="gpt-4o-mini")

        assert response["message"] is None
        assert response["finish_reason"] == "stop"


class TestAnthropicProvider:
    """Tests for AnthropicProvider with a stubbed client."""

    def test_split_system(self):
        system, messages = AnthropicProvider._split_system([
            {"role": "system", "content": "rules"},
            {"role": "user", "content": "hi"},
        ])

        assert system == "rules"
        assert messages == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_complete(self):
        provider = AnthropicProvider(api_key="test")
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Bonjour")],
            usage=SimpleNamespace(input_tokens=5, output_tokens=2),
            stop_reason="end_turn",
        ))
        provider._client = client

        response = await provider.complete(
            [{"role": "system", "content": "rules"}, {"role": "user", "content": "hi"}],
            model="claude-3-5-haiku-latest",
        )

        assert response["message"].content == "Bonjour"
        assert response["usage"]["total_tokens"] == 7
        assert client.messages.create.call_args.kwargs["system"] == "rules"

    @pytest.mark.asyncio
    async def test_reply_without_text(self):
        provider = AnthropicProvider()
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="tool_use")],
            usage=SimpleNamespace(input_tokens=5, output_tokens=0),
            stop_reason=None,
        ))
        provider._client = client

        response = await provider.complete([{"role": "user", "content": "hi"}])

        assert response["message"] is None
        assert response["finish_reason"] == "stop"
