"""Compaction engine run before every model call."""

from loguru import logger

from chatcompact.compaction.estimator import estimate_messages_tokens
from chatcompact.compaction.retention import select_messages
from chatcompact.compaction.summarizer import SummaryFallback
from chatcompact.compaction.types import CompactionResult, ConversationMessage
from chatcompact.config.schema import CompactionConfig, SummaryConfig
from chatcompact.providers.base import LLMProvider


class CompactionEngine:
    """
    Fits a conversation into the model's budget.

    Runs the retention policy, then the summary fallback. Each call is an
    independent, single-shot transformation: nothing is cached between calls
    and nothing is written back to the message store.
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        model: str | None = None,
        config: CompactionConfig | None = None,
        summary_config: SummaryConfig | None = None,
    ):
        """
        Initialize the compaction engine.

        Args:
            provider: LLM provider for summarization. Without one, the local
                digest is used.
            model: Model to use for summarization.
            config: Default compaction budget.
            summary_config: Summary fallback settings.
        """
        self.config = config or CompactionConfig()
        self.summary = SummaryFallback(provider, model, summary_config)

    def select(
        self,
        messages: list[ConversationMessage],
        config: CompactionConfig | None = None,
    ) -> list[ConversationMessage]:
        """Run the retention policy only."""
        return select_messages(messages, config or self.config)

    async def compact(
        self,
        messages: list[ConversationMessage],
        config: CompactionConfig | None = None,
    ) -> list[ConversationMessage]:
        """
        Compact messages for a single model call.

        Args:
            messages: Full conversation, ascending by created_at.
            config: Budget override for this call.

        Returns:
            A new list; the input is never mutated.
        """
        result = await self.compact_with_result(messages, config)
        return result.messages

    async def compact_with_result(
        self,
        messages: list[ConversationMessage],
        config: CompactionConfig | None = None,
    ) -> CompactionResult:
        """Compact messages and report what was dropped."""
        config = config or self.config
        tokens_before = estimate_messages_tokens(messages)

        if len(messages) <= config.max_messages:
            return CompactionResult(
                messages=list(messages),
                messages_before=len(messages),
                messages_after=len(messages),
                tokens_before=tokens_before,
                tokens_after=tokens_before,
            )

        retained = select_messages(messages, config)
        compacted, summary_kind = await self.summary.apply(messages, retained, config)

        # The synthetic message is not one of the input messages
        forwarded = len(compacted) - 1 if summary_kind != "none" else len(compacted)

        result = CompactionResult(
            messages=compacted,
            messages_before=len(messages),
            messages_after=len(compacted),
            tokens_before=tokens_before,
            tokens_after=estimate_messages_tokens(compacted),
            dropped_messages=len(messages) - forwarded,
            summary_kind=summary_kind,
        )

        logger.info(
            f"Compacted context: {result.messages_before} -> {result.messages_after} messages, "
            f"{result.tokens_before} -> {result.tokens_after} tokens "
            f"(summary: {summary_kind})"
        )
        return result
