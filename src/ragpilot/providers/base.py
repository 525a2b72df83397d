"""
Base LLM Provider interface.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from ragpilot.core.message import Message
from ragpilot.exceptions import LLMError

logger = logging.getLogger(__name__)


class LLMResponse(BaseModel):
    """Response from an LLM."""
    message: Message | None = None
    usage: dict[str, int] = {}
    finish_reason: str = "stop"

    @classmethod
    def from_text(
        cls,
        text: str | None,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        finish_reason: str | None = None,
    ) -> "LLMResponse":
        """Build a response; empty text leaves ``message`` unset."""
        return cls(
            message=Message.assistant(text) if text else None,
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            finish_reason=finish_reason or "stop",
        )

    def to_dict(self) -> dict[str, Any]:
        """The dict shape returned by ``LLMProvider.complete``."""
        return {
            "message": self.message,
            "usage": dict(self.usage),
            "finish_reason": self.finish_reason,
        }


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        **kwargs: Any
    ) -> dict[str, Any]:
        """
        Get a completion from the LLM.

        Args:
            messages: List of messages in API format
            model: Model identifier
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional provider-specific options

        Returns:
            Dictionary with 'message', 'usage', 'finish_reason'
        """
        pass

    @abstractmethod
    def get_available_models(self) -> list[str]:
        """Get list of available models."""
        pass


async def complete_text(
    provider: LLMProvider,
    prompt: str,
    *,
    model: str,
    system: str | None = None,
    temperature: float = 0.3,
    max_tokens: int = 500,
    timeout: float | None = None,
) -> str:
    """
    Run a single-turn completion and return its text.

    Args:
        provider: LLM provider to call
        prompt: User prompt
        model: Model identifier
        system: Optional system prompt
        temperature: Sampling temperature
        max_tokens: Maximum tokens to generate
        timeout: Seconds to wait before giving up

    Returns:
        The stripped response text

    Raises:
        LLMError: If the call fails, times out or returns no text.
            Cancellation is not converted.
    """
    messages = []
    if system:
        messages.append(Message.system(system).to_api_format())
    messages.append(Message.user(prompt).to_api_format())

    call = provider.complete(
        messages,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    )

    try:
        if timeout is not None:
            response = await asyncio.wait_for(call, timeout=timeout)
        else:
            response = await call
    except asyncio.TimeoutError as e:
        raise LLMError(f"LLM call timed out after {timeout}s") from e
    except LLMError:
        raise
    except Exception as e:
        raise LLMError(f"LLM call failed: {e}") from e

    message = response.get("message") if isinstance(response, dict) else None
    text = message.content if message is not None else ""
    if not text or not text.strip():
        raise LLMError("LLM returned an empty response")

    return text.strip()
