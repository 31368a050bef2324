"""Compaction system for context management."""

from chatcompact.compaction.estimator import (
    estimate_message_tokens,
    estimate_messages_tokens,
    estimate_tokens,
)
from chatcompact.compaction.retention import (
    dropped_messages,
    partition_messages,
    select_messages,
)
from chatcompact.compaction.summarizer import (
    SummaryFallback,
    build_digest,
    extract_topics,
    generate_summary,
)
from chatcompact.compaction.engine import CompactionEngine
from chatcompact.compaction.types import (
    CompactionResult,
    ConversationMessage,
    PLACEHOLDER_TEMPLATE,
    SUMMARY_MESSAGE_ID,
    SUMMARY_TEMPLATE,
)

__all__ = [
    # Estimator
    "estimate_tokens",
    "estimate_message_tokens",
    "estimate_messages_tokens",
    # Retention
    "select_messages",
    "partition_messages",
    "dropped_messages",
    # Summary fallback
    "SummaryFallback",
    "build_digest",
    "extract_topics",
    "generate_summary",
    # Engine
    "CompactionEngine",
    # Types
    "CompactionResult",
    "ConversationMessage",
    "PLACEHOLDER_TEMPLATE",
    "SUMMARY_MESSAGE_ID",
    "SUMMARY_TEMPLATE",
]
