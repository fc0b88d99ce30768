"""Persistent store contract for episodes, beliefs and persona.

Tables:
- episodes(id PK, summary, embedding vector(D), timestamp, importance,
  emotion, usage_count default 0, event_ids)
- beliefs(id PK, statement unique, confidence, created_at, updated_at,
  supporting_episodes)
- persona(key PK, value) with keys description and communication_style
- memory_meta(key PK, value) for bookkeeping such as last_reflection_at
  and born_at
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

import numpy as np

from episteme.memory.types import Belief, Episode, Persona

LAST_REFLECTION_KEY = "last_reflection_at"
BORN_AT_KEY = "born_at"


class MemoryStore(Protocol):
    """Protocol for the persistent store.

    Implementations:
    - InMemoryStore: process-local, numpy similarity search
    - PostgresStore: asyncpg + pgvector

    Every method raises StoreError on failure.
    """

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Create required tables and indexes if missing (idempotent)."""
        ...

    @abstractmethod
    async def save_episode(self, episode: Episode) -> None:
        """Upsert an episode row including its vector."""
        ...

    @abstractmethod
    async def search_episodes(self, embedding: np.ndarray, limit: int) -> list[Episode]:
        """Nearest neighbours by cosine similarity, closest first."""
        ...

    @abstractmethod
    async def recent_episodes(self, limit: int) -> list[Episode]:
        """Most recent episodes, newest first."""
        ...

    @abstractmethod
    async def count_episodes_since(self, timestamp: float) -> int:
        """Number of episodes with timestamp strictly after the given time."""
        ...

    @abstractmethod
    async def increment_usage(self, episode_id: str) -> None:
        """Atomically add one to an episode's usage_count."""
        ...

    @abstractmethod
    async def save_belief(self, belief: Belief) -> None:
        """Upsert a belief keyed by its unique statement."""
        ...

    @abstractmethod
    async def all_beliefs(self) -> list[Belief]:
        """Every belief, highest confidence first."""
        ...

    @abstractmethod
    async def top_beliefs(self, limit: int) -> list[Belief]:
        """Top-K beliefs by confidence."""
        ...

    @abstractmethod
    async def get_persona(self) -> Persona | None:
        """Current persona, or None before the first seed."""
        ...

    @abstractmethod
    async def save_persona(self, persona: Persona) -> None:
        """Overwrite both persona fields."""
        ...

    @abstractmethod
    async def get_meta(self, key: str) -> str | None:
        """Read a bookkeeping value."""
        ...

    @abstractmethod
    async def set_meta(self, key: str, value: str) -> None:
        """Write a bookkeeping value."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        ...
