"""
LLM Providers module.
"""

from ragpilot.providers.anthropic import AnthropicProvider
from ragpilot.providers.base import LLMProvider, LLMResponse, complete_text
from ragpilot.providers.fallback import FallbackProvider
from ragpilot.providers.openai import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "FallbackProvider",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "complete_text",
]
