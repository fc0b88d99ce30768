"""Persistent storage backends.

Usage:
    from episteme.db import InMemoryStore, PostgresStore

    store = PostgresStore(dsn, dimension=768)
    await store.ensure_schema()
"""

from episteme.db.store import BORN_AT_KEY, LAST_REFLECTION_KEY, MemoryStore
from episteme.db.memory import InMemoryStore
from episteme.db.postgres import PostgresStore

__all__ = [
    "BORN_AT_KEY",
    "LAST_REFLECTION_KEY",
    "MemoryStore",
    "InMemoryStore",
    "PostgresStore",
]
