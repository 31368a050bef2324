"""Tests for the compaction engine."""

import re

import pytest
from pydantic import ValidationError

from conftest import FakeProvider, make_conversation
from chatcompact.compaction.engine import CompactionEngine
from chatcompact.compaction.estimator import estimate_messages_tokens
from chatcompact.compaction.types import SUMMARY_MESSAGE_ID, ConversationMessage
from chatcompact.config.schema import CompactionConfig, SummaryConfig

SUMMARY_PATTERN = re.compile(
    r"^\[(Previous conversation summary: .+|"
    r"Previous conversation with \d+ earlier messages omitted for context length)\]$"
)


def assert_ordered(messages: list[ConversationMessage]) -> None:
    """System messages lead; the rest is ascending by created_at."""
    system_count = sum(1 for m in messages if m.is_system)
    assert all(m.is_system for m in messages[:system_count])
    stamps = [m.created_at for m in messages[system_count:]]
    assert stamps == sorted(stamps)


# ── Scenarios ───────────────────────────────────────────────────────


class TestScenarios:
    @pytest.mark.asyncio
    async def test_short_conversation_verbatim(self, provider: FakeProvider):
        messages = make_conversation(2, system="You are helpful.")
        engine = CompactionEngine(provider, config=CompactionConfig(max_messages=15))
        assert await engine.compact(messages) == messages
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_thirty_messages_without_summary(self):
        messages = make_conversation(30, chars=20)
        engine = CompactionEngine(summary_config=SummaryConfig(enabled=False))
        config = CompactionConfig(max_tokens=4000, max_messages=15, preserve_recent_messages=6)
        result = await engine.compact(messages, config)
        assert [m.id for m in result] == [f"m{i}" for i in range(15, 30)]
        assert all(not m.is_system for m in result)

    @pytest.mark.asyncio
    async def test_summary_threshold(self, provider: FakeProvider):
        messages = make_conversation(20)
        engine = CompactionEngine(
            provider,
            config=CompactionConfig(max_messages=10, preserve_recent_messages=5),
            summary_config=SummaryConfig(drop_threshold=5),
        )
        result = await engine.compact(messages)
        assert result[0].role == "system"
        assert SUMMARY_PATTERN.match(result[0].content)

    @pytest.mark.asyncio
    async def test_forced_timeout_gives_placeholder(self):
        engine = CompactionEngine(
            FakeProvider(delay=5.0),
            config=CompactionConfig(max_messages=10, preserve_recent_messages=5),
            summary_config=SummaryConfig(drop_threshold=5, timeout_seconds=0.05),
        )
        result = await engine.compact_with_result(make_conversation(20))
        assert result.summary_kind == "placeholder"
        # Retention dropped 10; one more gave its slot to the placeholder
        assert result.dropped_messages == 11
        assert result.messages[0].content == (
            "[Previous conversation with 10 earlier messages omitted for context length]"
        )


# ── Token budget with a summary ─────────────────────────────────────


class TestSummaryTokenBudget:
    @pytest.mark.asyncio
    async def test_long_summary_fits_tight_budget(self):
        config = CompactionConfig(max_tokens=60, max_messages=15, preserve_recent_messages=6)
        engine = CompactionEngine(FakeProvider(content="z" * 2000), config=config)
        messages = make_conversation(40, chars=20)

        result = await engine.compact_with_result(messages)

        assert result.summary_kind == "summary"
        assert result.messages[0].id == SUMMARY_MESSAGE_ID
        assert estimate_messages_tokens(result.messages) <= 60
        assert [m.id for m in result.messages[1:]] == [f"m{i}" for i in range(34, 40)]

    @pytest.mark.asyncio
    async def test_digest_fits_tight_budget(self):
        config = CompactionConfig(max_tokens=60, max_messages=15, preserve_recent_messages=6)
        engine = CompactionEngine(summary_config=SummaryConfig(strategy="digest"))
        result = await engine.compact(make_conversation(40, chars=20), config)
        assert result[0].id == SUMMARY_MESSAGE_ID
        assert estimate_messages_tokens(result) <= 60

    @pytest.mark.asyncio
    async def test_no_room_for_placeholder(self, provider: FakeProvider):
        config = CompactionConfig(max_tokens=40, max_messages=15, preserve_recent_messages=6)
        messages = make_conversation(40, chars=20)

        result = await CompactionEngine(provider).compact_with_result(messages, config)

        assert result.summary_kind == "none"
        assert all(m.id != SUMMARY_MESSAGE_ID for m in result.messages)
        assert [m.id for m in result.messages] == [f"m{i}" for i in range(32, 40)]
        assert result.tokens_after <= 40
        assert provider.calls == []


# ── Properties ──────────────────────────────────────────────────────


CONFIGS = [
    CompactionConfig(max_tokens=4000, max_messages=15, preserve_recent_messages=6),
    CompactionConfig(max_tokens=200, max_messages=10, preserve_recent_messages=4),
    CompactionConfig(max_tokens=50, max_messages=8, preserve_recent_messages=6),
    CompactionConfig(max_tokens=4000, max_messages=3, preserve_recent_messages=6),
    CompactionConfig(max_tokens=4000, max_messages=1, preserve_recent_messages=1),
    CompactionConfig(max_messages=12, preserve_system_message=False),
]


class TestProperties:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("config", CONFIGS)
    @pytest.mark.parametrize("with_system", [True, False])
    async def test_bounded_and_ordered(self, config: CompactionConfig, with_system: bool):
        messages = make_conversation(40, chars=35, system="Be concise." if with_system else None)
        engine = CompactionEngine(summary_config=SummaryConfig(drop_threshold=3))
        result = await engine.compact(messages, config)
        assert len(result) <= config.max_messages
        assert_ordered(result)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("config", CONFIGS[:2])
    async def test_recent_window_kept(self, config: CompactionConfig, provider: FakeProvider):
        messages = make_conversation(40, chars=20)
        result = await CompactionEngine(provider).compact(messages, config)
        for message in messages[-config.preserve_recent_messages:]:
            assert message in result

    @pytest.mark.asyncio
    async def test_idempotent_without_summary(self):
        engine = CompactionEngine(summary_config=SummaryConfig(enabled=False))
        config = CompactionConfig(max_tokens=300, max_messages=12)
        messages = make_conversation(50, chars=30, system="sys")
        once = await engine.compact(messages, config)
        assert await engine.compact(once, config) == once

    @pytest.mark.asyncio
    async def test_input_not_mutated(self, provider: FakeProvider):
        messages = make_conversation(30, system="sys")
        snapshot = list(messages)
        await CompactionEngine(provider).compact(messages)
        assert messages == snapshot

    @pytest.mark.asyncio
    async def test_empty_history(self, provider: FakeProvider):
        assert await CompactionEngine(provider).compact([]) == []

    @pytest.mark.asyncio
    async def test_summary_counts_towards_max_messages(self, provider: FakeProvider):
        config = CompactionConfig(max_messages=6, preserve_recent_messages=6)
        result = await CompactionEngine(provider).compact(make_conversation(30), config)
        assert len(result) == 6
        assert result[0].id == SUMMARY_MESSAGE_ID
        assert [m.id for m in result[1:]] == [f"m{i}" for i in range(25, 30)]


# ── Result and configuration ────────────────────────────────────────


class TestCompactWithResult:
    @pytest.mark.asyncio
    async def test_passthrough_stats(self):
        messages = make_conversation(3, chars=40)
        result = await CompactionEngine().compact_with_result(messages)
        assert not result.compacted
        assert result.messages_before == result.messages_after == 3
        assert result.tokens_before == result.tokens_after == 30
        assert result.summary_kind == "none"

    @pytest.mark.asyncio
    async def test_compacted_stats(self, provider: FakeProvider):
        engine = CompactionEngine(
            provider,
            config=CompactionConfig(max_messages=10, preserve_recent_messages=5),
        )
        result = await engine.compact_with_result(make_conversation(20))
        assert result.compacted
        assert result.messages_before == 20
        assert result.messages_after == 10
        assert result.dropped_messages == 11
        assert result.summary_kind == "summary"

    @pytest.mark.asyncio
    async def test_dropped_without_summary(self):
        engine = CompactionEngine(summary_config=SummaryConfig(enabled=False))
        result = await engine.compact_with_result(make_conversation(20), CompactionConfig(max_messages=10))
        assert result.dropped_messages == 10
        assert result.compacted

    def test_select_runs_retention_only(self, provider: FakeProvider):
        engine = CompactionEngine(provider, config=CompactionConfig(max_messages=10))
        result = engine.select(make_conversation(30))
        assert [m.id for m in result] == [f"m{i}" for i in range(20, 30)]
        assert provider.calls == []


class TestConfigValidation:
    @pytest.mark.parametrize("field", ["max_tokens", "max_messages", "preserve_recent_messages"])
    @pytest.mark.parametrize("value", [0, -5])
    def test_rejects_non_positive(self, field: str, value: int):
        with pytest.raises(ValidationError):
            CompactionConfig(**{field: value})

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            CompactionConfig(max_tokens=0)

    def test_defaults(self):
        config = CompactionConfig()
        assert config.max_tokens == 4000
        assert config.max_messages == 15
        assert config.preserve_system_message is True
        assert config.preserve_recent_messages == 6
