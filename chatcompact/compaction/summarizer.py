"""Synthetic summary for history dropped by compaction."""

import asyncio

from loguru import logger

from chatcompact.compaction.estimator import (
    CHARS_PER_TOKEN,
    estimate_messages_tokens,
    estimate_tokens,
)
from chatcompact.compaction.retention import dropped_messages
from chatcompact.compaction.types import (
    MAX_TOPICS,
    PLACEHOLDER_TEMPLATE,
    SUMMARIZE_INSTRUCTIONS,
    SUMMARY_MESSAGE_ID,
    SUMMARY_TEMPLATE,
    TOPIC_KEYWORDS,
    ConversationMessage,
)
from chatcompact.config.schema import CompactionConfig, SummaryConfig
from chatcompact.providers.base import LLMProvider, ProviderError


def truncate_excerpts(
    messages: list[ConversationMessage],
    max_messages: int,
    excerpt_chars: int,
) -> list[ConversationMessage]:
    """Take the oldest messages, each cut to a bounded excerpt."""
    return [
        ConversationMessage(
            id=m.id,
            role=m.role,
            content=m.content[:excerpt_chars],
            created_at=m.created_at,
        )
        for m in messages[:max_messages]
    ]


def extract_topics(
    messages: list[ConversationMessage],
    keywords: tuple[str, ...] = TOPIC_KEYWORDS,
    limit: int = MAX_TOPICS,
) -> list[str]:
    """
    Extract likely topics by simple keyword matching.

    A keyword is a topic when it occurs at least twice in the lower-cased
    conversation text. Topics are reported in keyword order.
    """
    text = " ".join(m.content for m in messages).lower()
    found = [keyword for keyword in keywords if text.count(keyword) >= 2]
    return found[:limit]


def build_digest(messages: list[ConversationMessage]) -> str:
    """Describe dropped messages without calling a model."""
    user_messages = sum(1 for m in messages if m.role == "user")
    assistant_messages = sum(1 for m in messages if m.role == "assistant")

    digest = (
        f"{user_messages} user messages and {assistant_messages} "
        "assistant responses were condensed."
    )
    topics = extract_topics(messages)
    if topics:
        digest += f" Topics discussed: {', '.join(topics)}."
    return digest


async def generate_summary(
    messages: list[ConversationMessage],
    provider: LLMProvider,
    model: str | None,
    max_output_tokens: int,
    temperature: float,
) -> str:
    """
    Summarize messages using the LLM.

    Raises:
        ProviderError: If the call failed or returned no text.
    """
    conversation = "\n".join(f"[{m.role}]: {m.content}" for m in messages)

    response = await provider.chat(
        messages=[
            {"role": "system", "content": SUMMARIZE_INSTRUCTIONS},
            {"role": "user", "content": conversation},
        ],
        model=model,
        max_tokens=max_output_tokens,
        temperature=temperature,
    )
    response.raise_for_error()

    summary = (response.content or "").strip()
    if not summary:
        raise ProviderError("invalid_response", "Summarizer returned empty content")
    return summary


def make_summary_message(content: str, created_at: int) -> ConversationMessage:
    return ConversationMessage(
        id=SUMMARY_MESSAGE_ID,
        role="system",
        content=content,
        created_at=created_at,
    )


def placeholder_text(dropped_count: int) -> str:
    return PLACEHOLDER_TEMPLATE.format(count=dropped_count)


class SummaryFallback:
    """
    Replaces dropped history with one synthetic system message.

    Activates when compaction dropped more than ``drop_threshold`` messages.
    The summary comes from the model (``llm`` strategy) or from a local
    keyword digest (``digest`` strategy, also used without a provider). Any
    summarization failure degrades to a fixed placeholder; this step never
    raises.
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        model: str | None = None,
        config: SummaryConfig | None = None,
    ):
        self.provider = provider
        self.model = model
        self.config = config or SummaryConfig()

    @property
    def uses_llm(self) -> bool:
        return self.config.strategy == "llm" and self.provider is not None

    def summary_reserve_tokens(self) -> int:
        """Token budget held back for the synthetic message."""
        wrapper = estimate_tokens(SUMMARY_TEMPLATE.format(summary=""))
        placeholder = estimate_tokens(placeholder_text(10**6))
        return max(wrapper + self.config.max_output_tokens, placeholder)

    def should_apply(self, dropped_count: int) -> bool:
        return self.config.enabled and dropped_count > self.config.drop_threshold

    def make_room(
        self,
        retained: list[ConversationMessage],
        compaction: CompactionConfig,
    ) -> list[ConversationMessage]:
        """
        Drop the oldest retained conversation messages until the synthetic
        message fits in both the count and token budgets.

        The recent window is protected, except that the synthetic message
        always gets a slot within max_messages.
        """
        kept = [m for m in retained if not m.is_system]
        protected = min(
            len(kept),
            compaction.preserve_recent_messages,
            compaction.max_messages - 1,
        )
        reserve = self.summary_reserve_tokens()

        while len(kept) > protected and (
            len(kept) + 1 > compaction.max_messages
            or estimate_messages_tokens(kept) + reserve > compaction.max_tokens
        ):
            kept.pop(0)

        return kept

    async def summarize(self, dropped: list[ConversationMessage]) -> tuple[str, str]:
        """
        Produce the summary text for dropped messages.

        Returns:
            Tuple of (text, kind) where kind is "summary", "digest" or
            "placeholder". The text is not yet wrapped in the summary
            template and is empty for the placeholder.
        """
        if not dropped:
            return "", "placeholder"

        if not self.uses_llm:
            return build_digest(dropped), "digest"

        excerpts = truncate_excerpts(
            dropped,
            self.config.max_input_messages,
            self.config.excerpt_chars,
        )

        try:
            summary = await asyncio.wait_for(
                generate_summary(
                    excerpts,
                    self.provider,
                    self.model,
                    self.config.max_output_tokens,
                    self.config.temperature,
                ),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Summarization timed out after {self.config.timeout_seconds}s, "
                "using placeholder"
            )
            return "", "placeholder"
        except ProviderError as e:
            logger.warning(f"Summarization unavailable ({e.kind}): {e}")
            return "", "placeholder"
        except Exception as e:
            logger.warning(f"Summarization failed, using placeholder: {e}")
            return "", "placeholder"

        return summary[: self.config.max_output_tokens * CHARS_PER_TOKEN], "summary"

    async def apply(
        self,
        original: list[ConversationMessage],
        retained: list[ConversationMessage],
        compaction: CompactionConfig,
    ) -> tuple[list[ConversationMessage], str]:
        """
        Prepend a synthetic summary when enough history was dropped.

        Args:
            original: Full conversation handed to compaction.
            retained: Output of the retention policy.
            compaction: Budget the output must respect.

        Returns:
            Tuple of (messages, summary_kind). summary_kind is "none" when
            the threshold was not exceeded, or when not even the placeholder
            fits in the token budget; ``retained`` is then returned as is.
        """
        dropped_count = len(original) - len(retained)
        if not self.should_apply(dropped_count):
            return retained, "none"

        kept = self.make_room(retained, compaction)
        available = compaction.max_tokens - estimate_messages_tokens(kept)
        placeholder = placeholder_text(dropped_count)
        if estimate_tokens(placeholder) > available:
            logger.debug(
                f"No room for a summary: {available} tokens left, "
                f"returning {len(retained)} retained messages"
            )
            return retained, "none"

        dropped = [m for m in dropped_messages(original, kept) if not m.is_system]
        summary, kind = await self.summarize(dropped)

        # Whatever is left of the token budget bounds the summary text
        limit = available * CHARS_PER_TOKEN - len(SUMMARY_TEMPLATE.format(summary=""))
        summary = summary[:limit]
        if kind == "placeholder" or not summary:
            content, kind = placeholder, "placeholder"
        else:
            content = SUMMARY_TEMPLATE.format(summary=summary)

        summary_message = make_summary_message(content, original[0].created_at)
        return [summary_message] + kept, kind
