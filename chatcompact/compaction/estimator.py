"""Token estimation for messages."""

import math
from typing import Iterable

from chatcompact.compaction.types import ConversationMessage

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str | None) -> int:
    """
    Estimate the number of tokens in a text string.

    This is a coarse, model-agnostic approximation (one token per four
    characters). It is not an exact count and will not match what a given
    model's tokenizer reports.

    Args:
        text: The text to estimate tokens for.

    Returns:
        Estimated token count.
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_message_tokens(message: ConversationMessage) -> int:
    """Estimate tokens for a single message's content."""
    return estimate_tokens(message.content)


def estimate_messages_tokens(messages: Iterable[ConversationMessage]) -> int:
    """Estimate total tokens for a list of messages."""
    return sum(estimate_message_tokens(msg) for msg in messages)
