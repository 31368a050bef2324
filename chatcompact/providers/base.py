"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

ErrorKind = Literal["network", "timeout", "rate_limited", "invalid_response"]


class ProviderError(Exception):
    """A model call failed."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind)
        self.kind = kind


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str | None
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)
    error_kind: ErrorKind | None = None

    @property
    def is_error(self) -> bool:
        return self.finish_reason == "error"

    def raise_for_error(self) -> None:
        """Raise ProviderError if this response carries a failed call."""
        if self.is_error:
            raise ProviderError(self.error_kind or "invalid_response", self.content or "")


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations should return an error response (finish_reason="error")
    rather than raise for failed calls.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (provider-specific).
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.

        Returns:
            LLMResponse with content.
        """
        pass

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        pass
