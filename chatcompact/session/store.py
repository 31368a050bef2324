"""Message stores for conversation history."""

import json
import os
import secrets
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path

from filelock import FileLock
from loguru import logger

from chatcompact.compaction.types import ConversationMessage
from chatcompact.utils.helpers import ensure_dir, safe_filename

# Abort a load once this many lines failed to parse
_MAX_CORRUPT_LINES = 50


class MessageStore(ABC):
    """Lists and appends the messages of a conversation."""

    @abstractmethod
    def list_messages(self, conversation_id: str) -> list[ConversationMessage]:
        """Return the conversation ascending by created_at."""
        pass

    @abstractmethod
    def append_message(self, conversation_id: str, message: ConversationMessage) -> None:
        pass


class InMemoryMessageStore(MessageStore):
    """Process-local store, mostly for tests and one-off runs."""

    def __init__(self):
        self._conversations: dict[str, list[ConversationMessage]] = {}

    def list_messages(self, conversation_id: str) -> list[ConversationMessage]:
        messages = self._conversations.get(conversation_id, [])
        return sorted(messages, key=lambda m: m.created_at)

    def append_message(self, conversation_id: str, message: ConversationMessage) -> None:
        self._conversations.setdefault(conversation_id, []).append(message)


class LRUCache:
    """Bounded mapping that evicts the least recently used conversation."""

    def __init__(self, capacity: int = 200):
        if capacity <= 0:
            raise ValueError("LRU cache capacity must be positive")
        self.capacity = capacity
        self._data: OrderedDict[str, list[ConversationMessage]] = OrderedDict()

    def get(self, key: str) -> list[ConversationMessage] | None:
        if key not in self._data:
            return None
        self._data.move_to_end(key)
        return self._data[key]

    def put(self, key: str, value: list[ConversationMessage]) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        if len(self._data) > self.capacity:
            self._data.popitem(last=False)  # Remove oldest

    def pop(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class JsonlMessageStore(MessageStore):
    """
    Stores each conversation as a JSONL file, one message per line.

    Reads go through an LRU cache owned by the store instance.
    """

    def __init__(self, root: Path, cache: LRUCache | None = None):
        self.root = ensure_dir(root)
        self.cache = cache if cache is not None else LRUCache()

    def _key(self, conversation_id: str) -> str:
        """File and cache key; ids that map to the same file share an entry."""
        return safe_filename(conversation_id.replace(":", "_"))

    def _get_path(self, conversation_id: str) -> Path:
        return self.root / f"{self._key(conversation_id)}.jsonl"

    def list_messages(self, conversation_id: str) -> list[ConversationMessage]:
        key = self._key(conversation_id)
        cached = self.cache.get(key)
        if cached is None:
            cached = self._load(conversation_id)
            self.cache.put(key, cached)
        return sorted(cached, key=lambda m: m.created_at)

    def append_message(self, conversation_id: str, message: ConversationMessage) -> None:
        path = self._get_path(conversation_id)

        # Re-read under the lock; another process may have appended
        with FileLock(path.with_suffix(".lock"), timeout=10):
            messages = self._load(conversation_id)
            messages.append(message)
            self._save(conversation_id, messages)
        self.cache.put(self._key(conversation_id), messages)

    def delete(self, conversation_id: str) -> bool:
        """
        Delete a conversation.

        Returns:
            True if deleted, False if not found.
        """
        self.cache.pop(self._key(conversation_id))
        path = self._get_path(conversation_id)

        with FileLock(path.with_suffix(".lock"), timeout=10):
            if path.exists():
                path.unlink()
                return True
        return False

    def _load(self, conversation_id: str) -> list[ConversationMessage]:
        """Load a conversation from disk, skipping corrupt lines."""
        path = self._get_path(conversation_id)
        if not path.exists():
            return []

        messages: list[ConversationMessage] = []
        corrupt_lines = 0

        with open(path, encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    messages.append(ConversationMessage.from_dict(json.loads(line)))
                except (json.JSONDecodeError, ValueError, TypeError, AttributeError):
                    corrupt_lines += 1
                    if corrupt_lines <= 3:
                        logger.warning(
                            f"Skipped corrupt line {line_num} in conversation {conversation_id}"
                        )
                    if corrupt_lines > _MAX_CORRUPT_LINES:
                        logger.error(
                            f"Too many corrupt lines in conversation {conversation_id}, aborting load"
                        )
                        return []

        if corrupt_lines:
            logger.warning(
                f"Conversation {conversation_id}: loaded with {corrupt_lines} corrupt line(s) skipped"
            )
        return messages

    def _save(self, conversation_id: str, messages: list[ConversationMessage]) -> None:
        """Write a conversation to disk atomically."""
        path = self._get_path(conversation_id)

        # Write to temp file first, then atomic rename
        tmp_path = path.with_suffix(f".tmp.{secrets.token_hex(4)}")
        try:
            with open(tmp_path, "w", encoding="utf-8", newline="\n") as f:
                for message in messages:
                    f.write(json.dumps(message.to_dict()) + "\n")
            os.replace(str(tmp_path), str(path))
        except Exception:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                pass
            raise
