"""Conversation memory interface and an in-process implementation."""

from typing import Protocol

from commentbot.models import ConversationMessage, ThreadKey


class ConversationMemory(Protocol):
    """Durable per-thread message log plus one rolling summary per thread.

    Messages are append-only. A thread has at most one summary and writes
    replace it. Missing data is returned as empty/None; storage failures
    raise ``StorageUnavailable``.
    """

    async def append(self, thread_key: ThreadKey, message: ConversationMessage) -> None: ...

    async def load_recent(
        self, thread_key: ThreadKey, max_items: int
    ) -> list[ConversationMessage]:
        """Return up to ``max_items`` newest messages, oldest first."""
        ...

    async def upsert_summary(self, thread_key: ThreadKey, summary: str) -> None: ...

    async def get_summary(self, thread_key: ThreadKey) -> str | None: ...

    async def close(self) -> None: ...


class InMemoryMemoryStore:
    """Process-local ConversationMemory, for tests and local development."""

    def __init__(self):
        self._messages: dict[ThreadKey, list[ConversationMessage]] = {}
        self._summaries: dict[ThreadKey, str] = {}

    async def append(self, thread_key: ThreadKey, message: ConversationMessage) -> None:
        self._messages.setdefault(thread_key, []).append(message)

    async def load_recent(
        self, thread_key: ThreadKey, max_items: int
    ) -> list[ConversationMessage]:
        if max_items <= 0:
            return []
        history = self._messages.get(thread_key, [])
        # Stable sort keeps insertion order for equal timestamps
        ordered = sorted(history, key=lambda m: m.timestamp)
        return ordered[-max_items:]

    async def upsert_summary(self, thread_key: ThreadKey, summary: str) -> None:
        self._summaries[thread_key] = summary

    async def get_summary(self, thread_key: ThreadKey) -> str | None:
        return self._summaries.get(thread_key)

    async def close(self) -> None:
        pass
