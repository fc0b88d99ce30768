"""Process-local memory store.

Keeps episodes, beliefs and persona in dictionaries and answers nearest
neighbour queries with a brute-force numpy dot product over the stacked
(unit-length) embeddings. Suitable for local runs, small deployments and
tests; contents are lost when the process exits.
"""

from __future__ import annotations

import dataclasses

import numpy as np

from episteme.errors import StoreError
from episteme.memory.types import Belief, Episode, Persona


def _copy_episode(episode: Episode) -> Episode:
    return dataclasses.replace(
        episode,
        embedding=episode.embedding.copy(),
        event_ids=list(episode.event_ids),
    )


def _copy_belief(belief: Belief) -> Belief:
    return dataclasses.replace(belief, supporting_episodes=list(belief.supporting_episodes))


class InMemoryStore:
    """Dictionary-backed MemoryStore implementation."""

    def __init__(self, dimension: int | None = None):
        """Initialize the store.

        Args:
            dimension: Optional embedding dimension to enforce on writes
        """
        self.dimension = dimension
        self._episodes: dict[str, Episode] = {}
        self._beliefs: dict[str, Belief] = {}  # Keyed by statement
        self._persona: dict[str, str] = {}
        self._meta: dict[str, str] = {}

    async def ensure_schema(self) -> None:
        """Nothing to create."""
        return None

    async def save_episode(self, episode: Episode) -> None:
        if self.dimension is not None and episode.embedding.shape != (self.dimension,):
            raise StoreError(
                f"Episode embedding has shape {episode.embedding.shape}, expected ({self.dimension},)"
            )
        self._episodes[episode.id] = _copy_episode(episode)

    async def search_episodes(self, embedding: np.ndarray, limit: int) -> list[Episode]:
        if not self._episodes or limit <= 0:
            return []

        episodes = list(self._episodes.values())
        matrix = np.stack([e.embedding for e in episodes])
        similarities = matrix @ np.asarray(embedding, dtype=np.float64)

        # argsort ascending, reversed for closest first
        order = np.argsort(similarities)[::-1][:limit]
        return [_copy_episode(episodes[i]) for i in order]

    async def recent_episodes(self, limit: int) -> list[Episode]:
        episodes = sorted(self._episodes.values(), key=lambda e: e.timestamp, reverse=True)
        return [_copy_episode(e) for e in episodes[:limit]]

    async def count_episodes_since(self, timestamp: float) -> int:
        return sum(1 for e in self._episodes.values() if e.timestamp > timestamp)

    async def get_episode(self, episode_id: str) -> Episode | None:
        """Fetch a single episode by id."""
        episode = self._episodes.get(episode_id)
        return _copy_episode(episode) if episode else None

    async def increment_usage(self, episode_id: str) -> None:
        episode = self._episodes.get(episode_id)
        if episode is None:
            raise StoreError(f"Unknown episode: {episode_id}")
        episode.usage_count += 1

    async def save_belief(self, belief: Belief) -> None:
        existing = self._beliefs.get(belief.statement)
        if existing is None:
            self._beliefs[belief.statement] = _copy_belief(belief)
            return
        # Upsert keyed by statement keeps the original id and created_at
        existing.confidence = belief.confidence
        existing.updated_at = belief.updated_at
        existing.supporting_episodes = list(belief.supporting_episodes)

    async def all_beliefs(self) -> list[Belief]:
        beliefs = sorted(self._beliefs.values(), key=lambda b: b.confidence, reverse=True)
        return [_copy_belief(b) for b in beliefs]

    async def top_beliefs(self, limit: int) -> list[Belief]:
        return (await self.all_beliefs())[:limit]

    async def get_persona(self) -> Persona | None:
        if not self._persona:
            return None
        return Persona.from_dict(self._persona)

    async def save_persona(self, persona: Persona) -> None:
        self._persona = persona.to_dict()

    async def get_meta(self, key: str) -> str | None:
        return self._meta.get(key)

    async def set_meta(self, key: str, value: str) -> None:
        self._meta[key] = value

    async def close(self) -> None:
        return None
