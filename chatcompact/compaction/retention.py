"""Retention policy: which messages survive compaction."""

from chatcompact.compaction.estimator import estimate_message_tokens, estimate_messages_tokens
from chatcompact.compaction.types import ConversationMessage
from chatcompact.config.schema import CompactionConfig


def partition_messages(
    messages: list[ConversationMessage],
) -> tuple[list[ConversationMessage], list[ConversationMessage]]:
    """
    Split messages into system and conversation messages.

    Relative order is preserved within each partition.

    Returns:
        Tuple of (system_messages, conversation_messages).
    """
    system_messages = [m for m in messages if m.is_system]
    conversation_messages = [m for m in messages if not m.is_system]
    return system_messages, conversation_messages


def overflow_window_size(preserve_recent_messages: int) -> int:
    """Number of recent messages kept when the recent window alone is over budget."""
    return max(1, preserve_recent_messages // 2)


def select_messages(
    messages: list[ConversationMessage],
    config: CompactionConfig,
) -> list[ConversationMessage]:
    """
    Select a token- and count-bounded subset of a conversation.

    The first system message (when preserved) and the most recent
    ``preserve_recent_messages`` conversation messages are kept, then older
    messages are added newest-first while they fit. The first older message
    that does not fit ends the walk.

    When the recent window alone is over the token budget, only the system
    message and the last half of the window are returned. That output can
    exceed ``max_tokens``; an empty context would be worse.

    Args:
        messages: Full conversation, ascending by created_at.
        config: Compaction budget.

    Returns:
        Selected messages: system message first, then conversation messages
        ascending by created_at.
    """
    if len(messages) <= config.max_messages:
        return list(messages)

    system_messages, conversation_messages = partition_messages(messages)

    seed: list[ConversationMessage] = []
    if config.preserve_system_message and system_messages:
        seed.append(system_messages[0])
    total_tokens = estimate_messages_tokens(seed)

    # The window never pushes the output past max_messages
    window = min(config.preserve_recent_messages, config.max_messages - len(seed))
    recent = conversation_messages[-window:] if window > 0 else []
    older = conversation_messages[: len(conversation_messages) - len(recent)]
    recent_tokens = estimate_messages_tokens(recent)

    if total_tokens + recent_tokens > config.max_tokens:
        keep = min(overflow_window_size(config.preserve_recent_messages), len(recent))
        return seed + recent[len(recent) - keep:]

    kept_older: list[ConversationMessage] = []
    total_tokens += recent_tokens

    for message in reversed(older):
        message_tokens = estimate_message_tokens(message)
        count = len(seed) + len(kept_older) + len(recent)
        if total_tokens + message_tokens > config.max_tokens or count >= config.max_messages:
            break
        kept_older.insert(0, message)
        total_tokens += message_tokens

    # Stable sort resolves timestamp ties by input order
    conversation = sorted(kept_older + recent, key=lambda m: m.created_at)
    return seed + conversation


def dropped_messages(
    original: list[ConversationMessage],
    retained: list[ConversationMessage],
) -> list[ConversationMessage]:
    """Return the messages of ``original`` missing from ``retained``, in input order."""
    retained_ids = {m.id for m in retained}
    return [m for m in original if m.id not in retained_ids]
