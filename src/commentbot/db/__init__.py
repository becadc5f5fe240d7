"""Database-backed storage."""

from commentbot.db.postgres import PostgresMemoryStore

__all__ = ["PostgresMemoryStore"]
