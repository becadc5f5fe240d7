"""Unit tests for the in-process conversation memory."""

from datetime import datetime, timezone

import pytest

from commentbot.models import ConversationMessage, ConversationRole, ThreadKey

KEY = ThreadKey(-1001, 10)
OTHER_KEY = ThreadKey(-1001, 11)


class TestInMemoryMemoryStore:
    """Test message log and summary semantics."""

    @pytest.mark.asyncio
    async def test_load_recent_unknown_thread_is_empty(self, memory):
        assert await memory.load_recent(KEY, 5) == []

    @pytest.mark.asyncio
    async def test_load_recent_returns_last_messages_in_order(self, memory):
        """After N appends, load_recent(M) returns the last min(N, M) oldest first."""
        for i in range(7):
            await memory.append(KEY, ConversationMessage.user(f"m{i}"))

        recent = await memory.load_recent(KEY, 3)
        assert [m.content for m in recent] == ["m4", "m5", "m6"]

        everything = await memory.load_recent(KEY, 50)
        assert [m.content for m in everything] == [f"m{i}" for i in range(7)]

    @pytest.mark.asyncio
    async def test_load_recent_non_positive_limit(self, memory):
        await memory.append(KEY, ConversationMessage.user("hi"))
        assert await memory.load_recent(KEY, 0) == []

    @pytest.mark.asyncio
    async def test_equal_timestamps_keep_insertion_order(self, memory):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for text in ("first", "second", "third"):
            await memory.append(
                KEY, ConversationMessage(role=ConversationRole.USER, content=text, timestamp=ts)
            )

        recent = await memory.load_recent(KEY, 3)
        assert [m.content for m in recent] == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_threads_are_isolated(self, memory):
        await memory.append(KEY, ConversationMessage.user("a"))
        await memory.append(OTHER_KEY, ConversationMessage.user("b"))

        assert [m.content for m in await memory.load_recent(KEY, 5)] == ["a"]
        assert [m.content for m in await memory.load_recent(OTHER_KEY, 5)] == ["b"]

    @pytest.mark.asyncio
    async def test_summary_missing_is_none(self, memory):
        assert await memory.get_summary(KEY) is None

    @pytest.mark.asyncio
    async def test_upsert_summary_last_write_wins(self, memory):
        await memory.upsert_summary(KEY, "first")
        await memory.upsert_summary(KEY, "first")
        assert await memory.get_summary(KEY) == "first"

        await memory.upsert_summary(KEY, "second")
        assert await memory.get_summary(KEY) == "second"
        assert await memory.get_summary(OTHER_KEY) is None
