"""PostgreSQL conversation memory."""

import logging
from contextlib import asynccontextmanager

import asyncpg

from commentbot.errors import StorageUnavailable
from commentbot.models import ConversationMessage, ConversationRole, ThreadKey

logger = logging.getLogger(__name__)


# SQL schema for conversation memory tables
SCHEMA_SQL = """
-- Append-only message log per thread
CREATE TABLE IF NOT EXISTS conversation_messages (
    id BIGSERIAL PRIMARY KEY,
    chat_id BIGINT NOT NULL,
    thread_id BIGINT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('system', 'user', 'assistant')),
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_conversation_messages_thread
    ON conversation_messages(chat_id, thread_id, created_at, id);

-- One rolling summary per thread
CREATE TABLE IF NOT EXISTS thread_summaries (
    chat_id BIGINT NOT NULL,
    thread_id BIGINT NOT NULL,
    summary TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (chat_id, thread_id)
);
"""

# Errors that mean the store could not do its job
_STORAGE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresMemoryStore:
    """ConversationMemory backed by an asyncpg connection pool."""

    def __init__(self, database_url: str, min_size: int = 2, max_size: int = 10):
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self._pool: asyncpg.Pool | None = None

    async def connect(self):
        """Create connection pool."""
        try:
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=self.min_size,
                max_size=self.max_size,
            )
        except _STORAGE_ERRORS as e:
            raise StorageUnavailable(f"Could not connect to database: {e}") from e

    async def close(self):
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self):
        """Get a connection from the pool, translating driver errors."""
        if not self._pool:
            raise StorageUnavailable("Database not connected")
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except _STORAGE_ERRORS as e:
            logger.error(f"Database operation failed: {e}")
            raise StorageUnavailable(str(e)) from e

    async def ensure_schema(self):
        """Create tables if they don't exist."""
        async with self.connection() as conn:
            await conn.execute(SCHEMA_SQL)

    # ============= Message Operations =============

    async def append(self, thread_key: ThreadKey, message: ConversationMessage) -> None:
        """Append one message to the thread's log."""
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO conversation_messages (chat_id, thread_id, role, content, created_at)
                VALUES ($1, $2, $3, $4, $5)
                """,
                thread_key.chat_id,
                thread_key.thread_id,
                message.role.value,
                message.content,
                message.timestamp,
            )

    async def load_recent(
        self, thread_key: ThreadKey, max_items: int
    ) -> list[ConversationMessage]:
        """Get the newest ``max_items`` messages, oldest first."""
        if max_items <= 0:
            return []
        async with self.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT role, content, created_at FROM conversation_messages
                WHERE chat_id = $1 AND thread_id = $2
                ORDER BY created_at DESC, id DESC
                LIMIT $3
                """,
                thread_key.chat_id,
                thread_key.thread_id,
                max_items,
            )
        return [self._row_to_message(row) for row in reversed(rows)]

    def _row_to_message(self, row: asyncpg.Record) -> ConversationMessage:
        return ConversationMessage(
            role=ConversationRole(row["role"]),
            content=row["content"],
            timestamp=row["created_at"],
        )

    # ============= Summary Operations =============

    async def upsert_summary(self, thread_key: ThreadKey, summary: str) -> None:
        """Replace the thread's summary."""
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO thread_summaries (chat_id, thread_id, summary, updated_at)
                VALUES ($1, $2, $3, NOW())
                ON CONFLICT (chat_id, thread_id)
                DO UPDATE SET summary = EXCLUDED.summary, updated_at = EXCLUDED.updated_at
                """,
                thread_key.chat_id,
                thread_key.thread_id,
                summary,
            )

    async def get_summary(self, thread_key: ThreadKey) -> str | None:
        """Get the thread's summary, if any."""
        async with self.connection() as conn:
            return await conn.fetchval(
                "SELECT summary FROM thread_summaries WHERE chat_id = $1 AND thread_id = $2",
                thread_key.chat_id,
                thread_key.thread_id,
            )
