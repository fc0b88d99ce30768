"""Postgres-backed memory store using asyncpg and pgvector.

Setup (once per database):
    CREATE EXTENSION IF NOT EXISTS vector;

ensure_schema() creates the tables and an HNSW cosine index on the episode
embedding column. Vectors are passed as pgvector text literals so no codec
registration is needed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import asyncpg
import numpy as np

from episteme.errors import StoreError
from episteme.memory.types import Belief, Episode, Persona

logger = logging.getLogger(__name__)


def _vector_literal(vector: np.ndarray) -> str:
    return "[" + ",".join(f"{x:.8f}" for x in np.asarray(vector, dtype=np.float64)) + "]"


def _parse_vector(value: Any) -> np.ndarray:
    if isinstance(value, str):
        return np.asarray(json.loads(value), dtype=np.float64)
    return np.asarray(value, dtype=np.float64)


def _parse_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return list(json.loads(value))
    return list(value)


class PostgresStore:
    """asyncpg-backed MemoryStore implementation."""

    def __init__(self, dsn: str, dimension: int = 768, command_timeout: float = 30.0):
        """Initialize the store.

        Args:
            dsn: Postgres connection string
            dimension: Embedding dimension D for the vector column
            command_timeout: Per-statement timeout in seconds
        """
        self.dsn = dsn.strip()
        if not self.dsn:
            raise ValueError("Postgres DSN cannot be empty")
        self.dimension = dimension
        self.command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None
        self._init_lock = asyncio.Lock()

    async def _ensure_pool(self) -> asyncpg.Pool:
        async with self._init_lock:
            if self._pool is None:
                try:
                    self._pool = await asyncpg.create_pool(
                        dsn=self.dsn,
                        min_size=1,
                        max_size=6,
                        command_timeout=self.command_timeout,
                    )
                except (OSError, asyncpg.PostgresError) as e:
                    raise StoreError(f"Could not connect to Postgres: {e}") from e
        return self._pool

    async def _execute(self, query: str, *args: Any) -> str:
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.execute(query, *args)
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Postgres write failed: {e}") from e

    async def _fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Postgres read failed: {e}") from e

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ensure_schema(self) -> None:
        """Create tables and indexes (idempotent).

        Raises:
            StoreError: Fatal at startup; the agent cannot run without schema
        """
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    await conn.execute(f"""
                        CREATE TABLE IF NOT EXISTS episodes (
                            id TEXT PRIMARY KEY,
                            summary TEXT NOT NULL,
                            embedding vector({self.dimension}) NOT NULL,
                            timestamp DOUBLE PRECISION NOT NULL,
                            importance REAL NOT NULL,
                            emotion REAL NOT NULL,
                            usage_count INTEGER NOT NULL DEFAULT 0,
                            event_ids JSONB NOT NULL DEFAULT '[]'::jsonb
                        )
                    """)
                    await conn.execute("""
                        CREATE INDEX IF NOT EXISTS episodes_timestamp_idx
                        ON episodes (timestamp DESC)
                    """)
                    await conn.execute("""
                        CREATE INDEX IF NOT EXISTS episodes_embedding_idx
                        ON episodes USING hnsw (embedding vector_cosine_ops)
                    """)
                    await conn.execute("""
                        CREATE TABLE IF NOT EXISTS beliefs (
                            id TEXT PRIMARY KEY,
                            statement TEXT NOT NULL UNIQUE,
                            confidence REAL NOT NULL,
                            created_at DOUBLE PRECISION NOT NULL,
                            updated_at DOUBLE PRECISION NOT NULL,
                            supporting_episodes JSONB NOT NULL DEFAULT '[]'::jsonb
                        )
                    """)
                    await conn.execute("""
                        CREATE TABLE IF NOT EXISTS persona (
                            key TEXT PRIMARY KEY,
                            value TEXT NOT NULL
                        )
                    """)
                    await conn.execute("""
                        CREATE TABLE IF NOT EXISTS memory_meta (
                            key TEXT PRIMARY KEY,
                            value TEXT NOT NULL
                        )
                    """)
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Schema setup failed: {e}") from e
        logger.info(f"Postgres memory schema ready (dimension={self.dimension})")

    # Episodes

    async def save_episode(self, episode: Episode) -> None:
        await self._execute(
            """
            INSERT INTO episodes (
                id, summary, embedding, timestamp, importance, emotion, usage_count, event_ids
            ) VALUES ($1, $2, $3::vector, $4, $5, $6, $7, $8::jsonb)
            ON CONFLICT (id) DO UPDATE SET
                summary = EXCLUDED.summary,
                embedding = EXCLUDED.embedding,
                timestamp = EXCLUDED.timestamp,
                importance = EXCLUDED.importance,
                emotion = EXCLUDED.emotion,
                event_ids = EXCLUDED.event_ids
            """,
            episode.id,
            episode.summary,
            _vector_literal(episode.embedding),
            episode.timestamp,
            episode.importance,
            episode.emotion,
            episode.usage_count,
            json.dumps(episode.event_ids),
        )

    async def search_episodes(self, embedding: np.ndarray, limit: int) -> list[Episode]:
        rows = await self._fetch(
            """
            SELECT id, summary, embedding::text AS embedding, timestamp, importance,
                   emotion, usage_count, event_ids
            FROM episodes
            ORDER BY embedding <=> $1::vector
            LIMIT $2
            """,
            _vector_literal(embedding),
            limit,
        )
        return [self._row_to_episode(row) for row in rows]

    async def recent_episodes(self, limit: int) -> list[Episode]:
        rows = await self._fetch(
            """
            SELECT id, summary, embedding::text AS embedding, timestamp, importance,
                   emotion, usage_count, event_ids
            FROM episodes
            ORDER BY timestamp DESC
            LIMIT $1
            """,
            limit,
        )
        return [self._row_to_episode(row) for row in rows]

    async def count_episodes_since(self, timestamp: float) -> int:
        rows = await self._fetch("SELECT COUNT(*) AS n FROM episodes WHERE timestamp > $1", timestamp)
        return int(rows[0]["n"]) if rows else 0

    async def increment_usage(self, episode_id: str) -> None:
        status = await self._execute(
            "UPDATE episodes SET usage_count = usage_count + 1 WHERE id = $1",
            episode_id,
        )
        if status.endswith(" 0"):
            raise StoreError(f"Unknown episode: {episode_id}")

    # Beliefs

    async def save_belief(self, belief: Belief) -> None:
        await self._execute(
            """
            INSERT INTO beliefs (
                id, statement, confidence, created_at, updated_at, supporting_episodes
            ) VALUES ($1, $2, $3, $4, $5, $6::jsonb)
            ON CONFLICT (statement) DO UPDATE SET
                confidence = EXCLUDED.confidence,
                updated_at = EXCLUDED.updated_at,
                supporting_episodes = EXCLUDED.supporting_episodes
            """,
            belief.id,
            belief.statement,
            belief.confidence,
            belief.created_at,
            belief.updated_at,
            json.dumps(belief.supporting_episodes),
        )

    async def all_beliefs(self) -> list[Belief]:
        rows = await self._fetch("SELECT * FROM beliefs ORDER BY confidence DESC")
        return [self._row_to_belief(row) for row in rows]

    async def top_beliefs(self, limit: int) -> list[Belief]:
        rows = await self._fetch("SELECT * FROM beliefs ORDER BY confidence DESC LIMIT $1", limit)
        return [self._row_to_belief(row) for row in rows]

    # Persona and bookkeeping

    async def get_persona(self) -> Persona | None:
        rows = await self._fetch(
            "SELECT key, value FROM persona WHERE key IN ('description', 'communication_style')"
        )
        if not rows:
            return None
        return Persona.from_dict({row["key"]: row["value"] for row in rows})

    async def save_persona(self, persona: Persona) -> None:
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    for key, value in persona.to_dict().items():
                        await conn.execute(
                            """
                            INSERT INTO persona (key, value) VALUES ($1, $2)
                            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                            """,
                            key,
                            value,
                        )
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Persona write failed: {e}") from e

    async def get_meta(self, key: str) -> str | None:
        rows = await self._fetch("SELECT value FROM memory_meta WHERE key = $1", key)
        return rows[0]["value"] if rows else None

    async def set_meta(self, key: str, value: str) -> None:
        await self._execute(
            """
            INSERT INTO memory_meta (key, value) VALUES ($1, $2)
            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
            """,
            key,
            value,
        )

    def _row_to_episode(self, row: Any) -> Episode:
        return Episode(
            id=row["id"],
            summary=row["summary"],
            embedding=_parse_vector(row["embedding"]),
            timestamp=float(row["timestamp"]),
            importance=float(row["importance"]),
            emotion=float(row["emotion"]),
            usage_count=int(row["usage_count"] or 0),
            event_ids=_parse_list(row["event_ids"]),
        )

    def _row_to_belief(self, row: Any) -> Belief:
        return Belief(
            id=row["id"],
            statement=row["statement"],
            confidence=float(row["confidence"]),
            created_at=float(row["created_at"]),
            updated_at=float(row["updated_at"]),
            supporting_episodes=_parse_list(row["supporting_episodes"]),
        )
