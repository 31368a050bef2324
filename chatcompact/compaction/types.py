"""Types for compaction system."""

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["system", "user", "assistant"]

VALID_ROLES: tuple[str, ...] = ("system", "user", "assistant")


@dataclass(frozen=True)
class ConversationMessage:
    """A single message of a conversation, as read from the message store."""

    id: str
    role: Role
    content: str = ""
    created_at: int = 0  # epoch ms

    @property
    def is_system(self) -> bool:
        return self.role == "system"

    def to_llm(self) -> dict[str, str]:
        """Convert to the role/content shape the model call expects."""
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationMessage":
        """
        Build a message from a stored or wire dict.

        Accepts camelCase or snake_case timestamps. Multi-part content is
        flattened to its text parts; images and other attachments are ignored.

        Raises:
            ValueError: If the id is missing or the role is unknown.
        """
        message_id = data.get("id")
        if not message_id:
            raise ValueError("Message is missing an id")

        role = data.get("role")
        if role not in VALID_ROLES:
            raise ValueError(f"Unknown message role: {role!r}")

        content = data.get("content")
        if isinstance(content, list):
            content = " ".join(
                p.get("text", "")
                for p in content
                if isinstance(p, dict) and p.get("type") == "text"
            )
        elif content is None:
            content = ""

        created_at = data.get("createdAt", data.get("created_at", 0))

        return cls(
            id=str(message_id),
            role=role,
            content=str(content),
            created_at=int(created_at or 0),
        )


@dataclass
class CompactionResult:
    """Result of a compaction operation."""

    messages: list[ConversationMessage] = field(default_factory=list)
    messages_before: int = 0
    messages_after: int = 0
    tokens_before: int = 0
    tokens_after: int = 0
    dropped_messages: int = 0
    summary_kind: Literal["none", "summary", "digest", "placeholder"] = "none"

    @property
    def compacted(self) -> bool:
        return self.dropped_messages > 0 or self.summary_kind != "none"


# Reserved id of the synthetic summary message
SUMMARY_MESSAGE_ID = "context_summary"

SUMMARY_TEMPLATE = "[Previous conversation summary: {summary}]"
PLACEHOLDER_TEMPLATE = (
    "[Previous conversation with {count} earlier messages omitted for context length]"
)

SUMMARIZE_INSTRUCTIONS = (
    "Summarize the following earlier part of a conversation in 2-3 sentences. "
    "Preserve important details such as names, numbers, decisions and open questions."
)

# Keywords probed by the local digest, in reporting order
TOPIC_KEYWORDS: tuple[str, ...] = (
    "code",
    "programming",
    "development",
    "bug",
    "error",
    "function",
    "design",
    "ui",
    "ux",
    "frontend",
    "backend",
    "database",
    "api",
    "server",
    "client",
    "web",
    "mobile",
    "app",
    "react",
    "javascript",
    "typescript",
    "python",
    "java",
    "help",
    "question",
    "problem",
    "solution",
    "advice",
)
MAX_TOPICS = 3
