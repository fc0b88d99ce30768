"""Running-average embedding of the agent's own voice.

The reply gate compares incoming messages against this vector to judge how
relevant a message is to the agent. Every message the agent sends is folded
in with equal weight:

    new = (old * n + emb) / (n + 1)
"""

from __future__ import annotations

import asyncio
import logging

import numpy as np

from episteme.ai.oracle import EmbeddingOracle, EmbeddingTaskType, bounded

logger = logging.getLogger(__name__)


class SelfConceptTracker:
    """Owns the self-concept vector and the count that fed it.

    Updates are serialized by an instance lock. The embedding call runs
    outside the lock so concurrent updates overlap on I/O, and each fold is
    applied under the lock so no update is lost.
    """

    def __init__(self, embedder: EmbeddingOracle, timeout: float = 30.0):
        """Initialize the tracker.

        Args:
            embedder: Embedding oracle
            timeout: Budget for each embedding call in seconds
        """
        self.embedder = embedder
        self.timeout = timeout
        self._vector: np.ndarray | None = None
        self._count = 0
        self._lock = asyncio.Lock()

    @property
    def vector(self) -> np.ndarray | None:
        """Current self-concept vector, or None before the first update."""
        return None if self._vector is None else self._vector.copy()

    @property
    def count(self) -> int:
        """Number of messages folded into the average."""
        return self._count

    @property
    def has_concept(self) -> bool:
        return self._vector is not None

    async def update(self, text: str) -> None:
        """Embed one of the agent's own messages and fold it in.

        Raises:
            OracleError: If the embedding call fails or times out
        """
        embedding = await bounded(
            self.embedder.embed(text, EmbeddingTaskType.SEMANTIC_SIMILARITY),
            self.timeout,
            "self-concept embedding",
        )
        embedding = np.asarray(embedding, dtype=np.float64)

        async with self._lock:
            self._fold(embedding)
            logger.debug(f"Self-concept updated (n={self._count})")

    def _fold(self, embedding: np.ndarray) -> None:
        """Apply one running-average step under the lock."""
        if self._vector is None:
            self._vector = embedding.copy()
        else:
            self._vector = (self._vector * self._count + embedding) / (self._count + 1)
        self._count += 1
