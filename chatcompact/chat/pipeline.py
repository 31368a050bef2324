"""Chat completion pipeline: history, compaction, model call."""

import time
import uuid

from loguru import logger

from chatcompact.compaction.engine import CompactionEngine
from chatcompact.compaction.types import ConversationMessage
from chatcompact.providers.base import LLMProvider
from chatcompact.session.store import MessageStore


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatPipeline:
    """
    Answers a user message within a conversation.

    1. Appends the user message to the store
    2. Lists the full history and compacts it for this call only
    3. Calls the model and appends its reply
    """

    def __init__(
        self,
        store: MessageStore,
        provider: LLMProvider,
        engine: CompactionEngine,
        model: str | None = None,
        max_output_tokens: int = 2048,
        temperature: float = 0.7,
    ):
        self.store = store
        self.provider = provider
        self.engine = engine
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    async def reply(self, conversation_id: str, user_text: str) -> ConversationMessage:
        """
        Send a user message and return the assistant's reply.

        Raises:
            ProviderError: If the model call failed.
        """
        user_message = ConversationMessage(
            id=uuid.uuid4().hex,
            role="user",
            content=user_text,
            created_at=_now_ms(),
        )
        self.store.append_message(conversation_id, user_message)

        history = self.store.list_messages(conversation_id)
        result = await self.engine.compact_with_result(history)
        if result.compacted:
            logger.debug(
                f"Conversation {conversation_id}: sending {result.messages_after} "
                f"of {result.messages_before} messages"
            )

        response = await self.provider.chat(
            messages=[m.to_llm() for m in result.messages],
            model=self.model,
            max_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )
        response.raise_for_error()

        assistant_message = ConversationMessage(
            id=uuid.uuid4().hex,
            role="assistant",
            content=response.content or "",
            # Never sort before the user message it answers
            created_at=max(_now_ms(), user_message.created_at),
        )
        self.store.append_message(conversation_id, assistant_message)
        return assistant_message
