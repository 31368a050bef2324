"""Message store module."""

from chatcompact.session.store import (
    InMemoryMessageStore,
    JsonlMessageStore,
    LRUCache,
    MessageStore,
)

__all__ = ["InMemoryMessageStore", "JsonlMessageStore", "LRUCache", "MessageStore"]
