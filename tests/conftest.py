"""Pytest configuration and fixtures for Episteme tests."""

from __future__ import annotations

import zlib
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from episteme.ai.oracle import EmbeddingTaskType
from episteme.db.memory import InMemoryStore
from episteme.memory.types import ChatEvent, Episode

DIM = 8
NOW = 1_700_000_000.0


def unit(*components: float, dim: int = DIM) -> np.ndarray:
    """Unit vector from leading components, zero-padded to dim."""
    vec = np.zeros(dim)
    vec[: len(components)] = components
    return vec / np.linalg.norm(vec)


class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEmbedder:
    """Deterministic embedding oracle.

    Texts registered in `vectors` map to that vector; anything else gets a
    stable pseudo-random unit vector seeded from its CRC32.
    """

    def __init__(self, dim: int = DIM):
        self.dim = dim
        self.vectors: dict[str, np.ndarray] = {}
        self.embed = AsyncMock(side_effect=self._embed)

    async def _embed(self, text: str, task_type: EmbeddingTaskType) -> np.ndarray:
        if text in self.vectors:
            return self.vectors[text].copy()
        rng = np.random.default_rng(zlib.crc32(text.encode()))
        vec = rng.normal(size=self.dim)
        return vec / np.linalg.norm(vec)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator():
    """Mock generation oracle; set generate.return_value per test."""
    gen = MagicMock()
    gen.generate = AsyncMock(
        return_value={"summary": "We chatted about startups.", "importance": 0.6, "emotion": 0.3}
    )
    return gen


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(dimension=DIM)


@pytest.fixture
def make_event():
    """Factory for chat events with sequential ids."""
    counter = {"n": 0}

    def _make(
        content: str = "hello there",
        author_id: str = "42",
        author_name: str = "Alice",
        timestamp: float = NOW,
        **kwargs: Any,
    ) -> ChatEvent:
        counter["n"] += 1
        return ChatEvent(
            id=kwargs.pop("id", f"evt-{counter['n']}"),
            author_id=author_id,
            author_name=author_name,
            timestamp=timestamp,
            content=content,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_episode():
    """Factory for episodes with sensible defaults."""

    def _make(
        summary: str = "I talked about startups with Alice.",
        embedding: np.ndarray | None = None,
        timestamp: float = NOW,
        importance: float = 0.5,
        **kwargs: Any,
    ) -> Episode:
        return Episode(
            summary=summary,
            embedding=unit(1.0) if embedding is None else embedding,
            timestamp=timestamp,
            importance=importance,
            emotion=kwargs.pop("emotion", 0.0),
            **kwargs,
        )

    return _make
