"""Episode retrieval with composite scoring.

Retrieval flow:
1. Embed the query as a retrieval query
2. Over-fetch nearest neighbours from the store (top_n * oversample_factor)
3. Score each candidate, dropping the forgotten ones
4. Sort by score (ties to the more recent episode) and take top_n
5. Track usage in the background for the returned episodes
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from episteme.db.store import MemoryStore

from episteme.ai.oracle import EmbeddingOracle, EmbeddingTaskType, bounded
from episteme.config import RetrievalConfig
from episteme.errors import StoreError
from episteme.memory.scoring import MemoryScorer
from episteme.memory.types import ChatEvent, Episode, ScoredEpisode

logger = logging.getLogger(__name__)


class MemoryRetriever:
    """Retrieves the most useful episodes for a query.

    Usage-count increments run as background tasks owned by the retriever.
    Callers never wait on them; drain() does, for shutdown and tests.
    """

    def __init__(
        self,
        embedder: EmbeddingOracle,
        store: MemoryStore,
        config: RetrievalConfig | None = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the retriever.

        Args:
            embedder: Embedding oracle for the query
            store: Persistent store
            config: Weights, decay constant, top_n and oversampling
            timeout: Budget for the embedding call in seconds
            clock: Source of unix time
        """
        self.embedder = embedder
        self.store = store
        self.config = config or RetrievalConfig()
        self.scorer = MemoryScorer(self.config)
        self.timeout = timeout
        self.clock = clock
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of usage updates still in flight."""
        return len(self._pending)

    async def retrieve_scored(
        self,
        query: ChatEvent | str,
        top_n: int | None = None,
    ) -> list[ScoredEpisode]:
        """Retrieve episodes with their score breakdown.

        Args:
            query: Incoming event or raw text
            top_n: Override for the number of episodes returned

        Returns:
            At most top_n scored episodes, best first

        Raises:
            OracleError: If the query embedding fails
            StoreError: If the similarity search fails
        """
        text = query.content if isinstance(query, ChatEvent) else query
        n = self.config.top_n if top_n is None else top_n
        if n <= 0:
            return []

        query_embedding = await bounded(
            self.embedder.embed(text, EmbeddingTaskType.RETRIEVAL_QUERY),
            self.timeout,
            "retrieval embedding",
        )

        candidates = await self.store.search_episodes(
            query_embedding, limit=n * self.config.oversample_factor
        )
        ranked = self.scorer.rank(candidates, query_embedding, top_n=n, as_of=self.clock())

        top_score = ranked[0].score if ranked else 0.0
        logger.debug(
            f"Retrieved {len(ranked)}/{len(candidates)} episodes (top score={top_score:.3f})"
        )

        self._track_usage([s.episode for s in ranked])
        return ranked

    async def retrieve(self, query: ChatEvent | str, top_n: int | None = None) -> list[Episode]:
        """Retrieve the best episodes for a query, best first."""
        return [s.episode for s in await self.retrieve_scored(query, top_n)]

    def _track_usage(self, episodes: list[Episode]) -> None:
        if not episodes:
            return
        task = asyncio.create_task(self._increment_usage([e.id for e in episodes]))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _increment_usage(self, episode_ids: list[str]) -> None:
        for episode_id in episode_ids:
            try:
                await self.store.increment_usage(episode_id)
            except StoreError as e:
                logger.warning(f"Failed to increment usage for {episode_id}: {e}")

    async def drain(self) -> None:
        """Wait for outstanding usage updates."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
