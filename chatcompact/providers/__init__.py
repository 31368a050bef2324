"""LLM provider abstraction module."""

from chatcompact.providers.base import LLMProvider, LLMResponse, ProviderError
from chatcompact.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider", "ProviderError"]
