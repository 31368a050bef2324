"""Shared test fixtures."""

import asyncio
from typing import Any

import pytest

from chatcompact.compaction.types import ConversationMessage
from chatcompact.providers.base import LLMProvider, LLMResponse


class FakeProvider(LLMProvider):
    """Records calls and answers with a canned response."""

    def __init__(
        self,
        content: str | None = "They discussed the launch plan.",
        finish_reason: str = "stop",
        error_kind: str | None = None,
        raises: Exception | None = None,
        delay: float = 0.0,
    ):
        super().__init__()
        self.content = content
        self.finish_reason = finish_reason
        self.error_kind = error_kind
        self.raises = raises
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        self.calls.append({
            "messages": messages,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        return LLMResponse(
            content=self.content,
            finish_reason=self.finish_reason,
            error_kind=self.error_kind,
        )

    def get_default_model(self) -> str:
        return "fake/model"


def make_conversation(
    count: int,
    chars: int = 20,
    system: str | None = None,
) -> list[ConversationMessage]:
    """Alternating user/assistant messages, optionally led by a system prompt."""
    messages = []
    if system is not None:
        messages.append(ConversationMessage(id="sys", role="system", content=system, created_at=0))
    for i in range(count):
        messages.append(
            ConversationMessage(
                id=f"m{i}",
                role="user" if i % 2 == 0 else "assistant",
                content="x" * chars,
                created_at=1000 + i,
            )
        )
    return messages


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
