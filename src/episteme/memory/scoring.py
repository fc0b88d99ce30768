"""Episode scoring with exponential decay.

Implements the composite retrieval score:
S = alpha*recency + beta*decayed_importance + gamma*relevance + delta*usage

Where, for an episode of age t seconds:
- recency = exp(-t / tau)
- decayed_importance = importance * exp(-t / tau)
- relevance = cosine(query, episode embedding)
- usage = ln(1 + usage_count)
"""

from __future__ import annotations

import math
import time

import numpy as np

from episteme.config import RetrievalConfig
from episteme.memory.types import Episode, ScoredEpisode


def l2_normalize(vector: np.ndarray | list[float]) -> np.ndarray:
    """Scale a vector to unit length.

    Raises:
        ValueError: If the vector has zero norm
    """
    arr = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(arr)
    if norm == 0.0 or not np.isfinite(norm):
        raise ValueError("Cannot normalize a zero or non-finite vector")
    return arr / norm


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two unit vectors.

    Both inputs are L2-normalized by invariant, so this reduces to the dot
    product.
    """
    return float(np.dot(a, b))


def sigmoid(x: float) -> float:
    """Logistic function, stable for large |x|."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


class MemoryScorer:
    """Calculates composite episode scores.

    The composite score determines retrieval priority. Candidates whose
    decayed importance falls below the forget threshold are treated as
    forgotten and dropped before ranking.
    """

    def __init__(self, config: RetrievalConfig | None = None):
        """Initialize the scorer.

        Args:
            config: Retrieval weights, decay constant and forget threshold
        """
        self.config = config or RetrievalConfig()

    def calculate_recency_score(self, age_seconds: float) -> float:
        """Recency = exp(-age / tau). Negative ages count as zero."""
        age = max(0.0, age_seconds)
        return math.exp(-age / self.config.decay_tau)

    def calculate_decayed_importance(self, importance: float, age_seconds: float) -> float:
        """Decayed importance = importance * exp(-age / tau)."""
        return importance * self.calculate_recency_score(age_seconds)

    def calculate_usage_score(self, usage_count: int) -> float:
        """Usage = ln(1 + usage_count)."""
        return math.log1p(max(0, usage_count))

    def calculate_composite_score(
        self,
        recency: float,
        decayed_importance: float,
        relevance: float,
        usage: float,
    ) -> float:
        """Weighted sum of the four components."""
        cfg = self.config
        return (
            cfg.alpha * recency
            + cfg.beta * decayed_importance
            + cfg.gamma * relevance
            + cfg.delta * usage
        )

    def is_forgotten(self, decayed_importance: float) -> bool:
        """Whether an episode has decayed below the forget threshold."""
        return decayed_importance < self.config.forget_threshold

    def score_episode(
        self,
        episode: Episode,
        query_embedding: np.ndarray,
        as_of: float | None = None,
    ) -> ScoredEpisode:
        """Calculate every score component for an episode.

        Args:
            episode: Candidate episode
            query_embedding: Unit-length query vector
            as_of: Reference unix time (default: now)

        Returns:
            ScoredEpisode with all components and the composite
        """
        if as_of is None:
            as_of = time.time()

        age = max(0.0, as_of - episode.timestamp)
        recency = self.calculate_recency_score(age)
        decayed_importance = episode.importance * recency
        relevance = cosine_similarity(query_embedding, episode.embedding)
        usage = self.calculate_usage_score(episode.usage_count)

        return ScoredEpisode(
            episode=episode,
            recency=recency,
            decayed_importance=decayed_importance,
            relevance=relevance,
            usage=usage,
            score=self.calculate_composite_score(recency, decayed_importance, relevance, usage),
        )

    def rank(
        self,
        candidates: list[Episode],
        query_embedding: np.ndarray,
        top_n: int,
        as_of: float | None = None,
    ) -> list[ScoredEpisode]:
        """Score, drop forgotten, and sort candidates.

        Sorted by score descending; ties go to the more recent episode.
        """
        if as_of is None:
            as_of = time.time()

        scored = []
        for episode in candidates:
            result = self.score_episode(episode, query_embedding, as_of)
            if self.is_forgotten(result.decayed_importance):
                continue
            scored.append(result)

        scored.sort(key=lambda s: (s.score, s.episode.timestamp), reverse=True)
        return scored[:top_n]
