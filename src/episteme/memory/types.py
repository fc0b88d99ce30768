"""Memory data model.

Defines the conversational event stream, episodes distilled from it,
beliefs distilled from episodes, and the singleton persona.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import numpy as np


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


@dataclass(frozen=True)
class ChatEvent:
    """A single message observed on a conversation channel.

    Ephemeral: lives only in working memory and the episode buffer.
    """

    id: str
    author_id: str
    author_name: str
    timestamp: float  # Unix seconds
    content: str
    is_mention: bool = False
    is_own: bool = False  # Authored by the agent itself

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "timestamp": self.timestamp,
            "content": self.content,
            "is_mention": self.is_mention,
            "is_own": self.is_own,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatEvent:
        """Deserialize from dictionary."""
        return cls(
            id=str(data["id"]),
            author_id=str(data["author_id"]),
            author_name=data.get("author_name", ""),
            timestamp=float(data["timestamp"]),
            content=data.get("content", ""),
            is_mention=bool(data.get("is_mention", False)),
            is_own=bool(data.get("is_own", False)),
        )


@dataclass
class Episode:
    """A summarized, scored, embedded consolidation of a batch of events.

    Immutable once persisted except for usage_count, which retrieval
    increments.
    """

    summary: str
    embedding: np.ndarray
    timestamp: float
    importance: float  # [0, 1]
    emotion: float  # [-1, 1]
    event_ids: list[str] = field(default_factory=list)
    usage_count: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        """Coerce the embedding and clamp scores into range."""
        self.embedding = np.asarray(self.embedding, dtype=np.float64)
        self.importance = clamp(float(self.importance), 0.0, 1.0)
        self.emotion = clamp(float(self.emotion), -1.0, 1.0)
        if self.usage_count < 0:
            raise ValueError("usage_count must be non-negative")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "summary": self.summary,
            "embedding": self.embedding.tolist(),
            "timestamp": self.timestamp,
            "importance": self.importance,
            "emotion": self.emotion,
            "usage_count": self.usage_count,
            "event_ids": list(self.event_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Episode:
        """Deserialize from dictionary."""
        return cls(
            id=str(data["id"]),
            summary=data["summary"],
            embedding=np.asarray(data["embedding"], dtype=np.float64),
            timestamp=float(data["timestamp"]),
            importance=data.get("importance", 0.0),
            emotion=data.get("emotion", 0.0),
            usage_count=int(data.get("usage_count", 0) or 0),
            event_ids=list(data.get("event_ids") or []),
        )


@dataclass
class Belief:
    """A durable, confidence-weighted inference distilled from episodes."""

    statement: str
    confidence: float  # [0, 1]
    supporting_episodes: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        self.confidence = clamp(float(self.confidence), 0.0, 1.0)

    def reinforce(self, importance: float, episode_id: str, now: float | None = None) -> None:
        """Fold new evidence into confidence with a noisy-OR.

        new = 1 - (1 - old) * (1 - importance)

        Confidence never decreases, and strictly increases whenever
        importance > 0 and confidence < 1.
        """
        importance = clamp(importance, 0.0, 1.0)
        self.confidence = clamp(1.0 - (1.0 - self.confidence) * (1.0 - importance), 0.0, 1.0)
        if episode_id not in self.supporting_episodes:
            self.supporting_episodes.append(episode_id)
        self.updated_at = now if now is not None else time.time()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "statement": self.statement,
            "confidence": self.confidence,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "supporting_episodes": list(self.supporting_episodes),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Belief:
        """Deserialize from dictionary."""
        return cls(
            id=str(data["id"]),
            statement=data["statement"],
            confidence=data.get("confidence", 0.0),
            created_at=float(data.get("created_at") or time.time()),
            updated_at=float(data.get("updated_at") or time.time()),
            supporting_episodes=list(data.get("supporting_episodes") or []),
        )


@dataclass
class Persona:
    """The agent's current self-description and communication style."""

    description: str
    communication_style: str

    def to_dict(self) -> dict[str, str]:
        """Serialize to the persona key-value layout."""
        return {
            "description": self.description,
            "communication_style": self.communication_style,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Persona:
        """Deserialize from the persona key-value layout."""
        return cls(
            description=data.get("description", ""),
            communication_style=data.get("communication_style", ""),
        )


@dataclass
class ScoredEpisode:
    """Composite retrieval score components for one candidate episode.

    score = alpha*recency + beta*decayed_importance + gamma*relevance + delta*usage
    """

    episode: Episode
    recency: float
    decayed_importance: float
    relevance: float
    usage: float
    score: float

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary (embedding omitted)."""
        return {
            "episode_id": self.episode.id,
            "summary": self.episode.summary,
            "recency": self.recency,
            "decayed_importance": self.decayed_importance,
            "relevance": self.relevance,
            "usage": self.usage,
            "score": self.score,
        }
