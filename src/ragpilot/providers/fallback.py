"""
Provider that tries several LLM providers in order.
"""

import asyncio
import logging
from typing import Any

from ragpilot.exceptions import LLMError
from ragpilot.providers.base import LLMProvider

logger = logging.getLogger(__name__)


class FallbackProvider(LLMProvider):
    """
    Try each provider in turn until one returns a message.

    Each entry is a ``(provider, model)`` pair; the model passed to
    ``complete`` is ignored in favour of the per-provider model so that,
    e.g., a Claude model is never sent to OpenAI.
    """

    def __init__(self, providers: list[tuple[LLMProvider, str]]):
        if not providers:
            raise ValueError("FallbackProvider needs at least one provider")
        self.providers = providers

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str = "",
        temperature: float = 0.7,
        max_tokens: int = 4096,
        **kwargs: Any
    ) -> dict[str, Any]:
        errors = []

        for provider, provider_model in self.providers:
            name = type(provider).__name__
            try:
                response = await provider.complete(
                    messages,
                    model=provider_model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    **kwargs
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"{name} ({provider_model}) failed, trying next: {e}")
                errors.append(f"{name}: {e}")
                continue

            if response.get("message") is not None:
                return response

            logger.warning(f"{name} ({provider_model}) returned no content, trying next")
            errors.append(f"{name}: empty response")

        raise LLMError("All providers failed: " + "; ".join(errors))

    def get_available_models(self) -> list[str]:
        return [model for _, model in self.providers]
