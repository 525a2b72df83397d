"""
Anthropic Claude LLM Provider.
"""

from typing import Any

from ragpilot.providers.base import LLMProvider, LLMResponse


class AnthropicProvider(LLMProvider):
    """
    LLM Provider for Anthropic Claude API.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None
    ):
        self.api_key = api_key
        self.base_url = base_url
        self._client = None

    def _get_client(self):
        """Get or create Anthropic client."""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError:
                raise ImportError(
                    "anthropic package not installed. "
                    "Install with: pip install ragpilot[anthropic]"
                )

            self._client = AsyncAnthropic(
                api_key=self.api_key,
                base_url=self.base_url
            )
        return self._client

    @staticmethod
    def _split_system(
        messages: list[dict[str, Any]]
    ) -> tuple[str, list[dict[str, Any]]]:
        """
        Pull system messages out of the list.
        Returns (system_prompt, messages)
        """
        system_parts = []
        converted = []

        for msg in messages:
            role = msg.get("role", "")
            content = msg.get("content", "")

            if role == "system":
                system_parts.append(content)
            elif role in ("user", "assistant"):
                converted.append({"role": role, "content": content})

        return "\n".join(system_parts).strip(), converted

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str = "claude-3-5-haiku-latest",
        temperature: float = 0.7,
        max_tokens: int = 4096,
        **kwargs: Any
    ) -> dict[str, Any]:
        """Get a completion from Anthropic."""
        client = self._get_client()

        system_prompt, converted_messages = self._split_system(messages)

        params: dict[str, Any] = {
            "model": model,
            "messages": converted_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if system_prompt:
            params["system"] = system_prompt

        params.update(kwargs)

        response = await client.messages.create(**params)

        text = "\n".join(
            block.text for block in response.content if block.type == "text"
        )
        return LLMResponse.from_text(
            text,
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
            finish_reason=response.stop_reason,
        ).to_dict()

    def get_available_models(self) -> list[str]:
        """Get list of available Claude models."""
        return [
            "claude-3-5-sonnet-latest",
            "claude-3-5-haiku-latest",
            "claude-3-opus-latest",
        ]
