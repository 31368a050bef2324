"""LiteLLM provider implementation for multi-provider support."""

import asyncio
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from chatcompact.providers.base import ErrorKind, LLMProvider, LLMResponse


def classify_error(error: Exception) -> ErrorKind:
    """Map a model-call exception to a provider error kind."""
    # litellm.Timeout subclasses APIConnectionError, so it is checked first
    if isinstance(error, (litellm.Timeout, asyncio.TimeoutError, TimeoutError)):
        return "timeout"
    if isinstance(error, litellm.RateLimitError):
        return "rate_limited"
    if isinstance(error, (litellm.APIConnectionError, ConnectionError)):
        return "network"
    return "invalid_response"


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM for multi-provider support.

    Supports OpenRouter, Google Gemini, Mistral, OpenAI and many other
    providers through a unified interface.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "gemini/gemini-2.0-flash",
        request_timeout_seconds: float = 45.0,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.request_timeout_seconds = request_timeout_seconds

        # Detect OpenRouter by api_key prefix or explicit api_base
        self.is_openrouter = bool(
            (api_key and api_key.startswith("sk-or-")) or
            (api_base and "openrouter" in api_base)
        )

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    def resolve_model(self, model: str | None) -> str:
        """Apply the provider prefix LiteLLM routes on."""
        model = model or self.default_model

        if self.is_openrouter and not model.startswith("openrouter/"):
            return f"openrouter/{model}"

        if "gemini" in model.lower() and "/" not in model:
            return f"gemini/{model}"

        if "mistral" in model.lower() and "/" not in model:
            return f"mistral/{model}"

        return model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (e.g., 'gemini/gemini-2.0-flash').
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.

        Returns:
            LLMResponse with content, or an error response on failure.
        """
        kwargs: dict[str, Any] = {
            "model": self.resolve_model(model),
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "timeout": self.request_timeout_seconds,
        }

        # Pass api_base and api_key directly for custom endpoints
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            # Redact potential API keys from error messages
            error_msg = str(e)
            if self.api_key and len(self.api_key) > 8:
                error_msg = error_msg.replace(self.api_key, "***")
            kind = classify_error(e)
            logger.error(f"LLM call error ({kind}): {error_msg}")
            return LLMResponse(
                content=f"Error calling LLM: {error_msg}",
                finish_reason="error",
                error_kind=kind,
            )

        try:
            return self._parse_response(response)
        except (AttributeError, IndexError, TypeError) as e:
            logger.error(f"Malformed LLM response: {e}")
            return LLMResponse(
                content=f"Malformed LLM response: {e}",
                finish_reason="error",
                error_kind="invalid_response",
            )

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choice = response.choices[0]
        message = choice.message

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
