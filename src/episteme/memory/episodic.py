"""Episode formation.

Buffers incoming chat events and, when a trigger fires, distills the batch
into a single persisted Episode:

1. Summarize and score the batch via the generation oracle
2. Embed the summary as a retrieval document
3. Persist the episode
4. Remove exactly the formed events from the buffer

Trigger, checked after every event: the buffer reached the creation
threshold, or more than the creation timeout elapsed since the previous
check and the buffer is non-empty.

Formation is all-or-nothing. If an oracle call fails, times out, or returns
unusable output, nothing is persisted and the batch stays buffered for the
next trigger.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from episteme.db.store import MemoryStore

from episteme.ai.oracle import EmbeddingOracle, EmbeddingTaskType, GenerationOracle, bounded
from episteme.ai.prompts import EPISODE_SCHEMA, SUMMARIZE_SYSTEM, SUMMARIZE_USER
from episteme.ai.schemas import parse_episode_scoring
from episteme.config import EpisodeConfig
from episteme.errors import OracleError, ValidationError
from episteme.memory.prompt import format_event
from episteme.memory.types import ChatEvent, Episode

logger = logging.getLogger(__name__)


class EpisodeFormation:
    """Owns the event buffer and the last-check timestamp for one agent."""

    def __init__(
        self,
        generator: GenerationOracle,
        embedder: EmbeddingOracle,
        store: MemoryStore,
        config: EpisodeConfig | None = None,
        agent_name: str = "Gary",
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize episode formation.

        Args:
            generator: Generation oracle used for summarization
            embedder: Embedding oracle used for the summary vector
            store: Persistent store
            config: Threshold and timeout
            agent_name: Name used in first-person summaries
            timeout: Budget for each oracle call in seconds
            clock: Source of unix time
        """
        self.generator = generator
        self.embedder = embedder
        self.store = store
        self.config = config or EpisodeConfig()
        self.agent_name = agent_name
        self.timeout = timeout
        self.clock = clock

        self._buffer: list[ChatEvent] = []
        self._last_check = clock()
        self._buffer_lock = asyncio.Lock()
        self._formation_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._buffer)

    def buffered(self) -> list[ChatEvent]:
        """Snapshot of the buffered events, oldest first."""
        return list(self._buffer)

    @property
    def forming(self) -> bool:
        """Whether a formation is currently in flight."""
        return self._formation_lock.locked()

    def should_trigger(self, now: float) -> bool:
        """Evaluate the trigger condition and record this check.

        Callers hold the buffer lock.
        """
        elapsed = now - self._last_check
        self._last_check = now

        if len(self._buffer) >= self.config.creation_threshold:
            return True
        return elapsed > self.config.creation_timeout and len(self._buffer) > 0

    async def add(self, event: ChatEvent) -> Episode | None:
        """Buffer an event and form an episode if the trigger fires.

        Returns:
            The new episode, or None if nothing was formed

        Raises:
            StoreError: If saving the episode fails (buffer unchanged)
        """
        async with self._buffer_lock:
            self._buffer.append(event)
            triggered = self.should_trigger(self.clock())
            size = len(self._buffer)

        logger.debug(f"Buffered event {event.id} (size={size}, triggered={triggered})")
        if not triggered:
            return None

        if self.forming:
            # The in-flight formation leaves these events buffered for the next trigger
            logger.debug("Formation already in flight, deferring")
            return None

        return await self._form()

    async def flush(self) -> Episode | None:
        """Form an episode from whatever is buffered, regardless of trigger."""
        async with self._buffer_lock:
            self._last_check = self.clock()
            if not self._buffer:
                return None
        return await self._form()

    async def _form(self) -> Episode | None:
        async with self._formation_lock:
            async with self._buffer_lock:
                batch = list(self._buffer)
            if not batch:
                return None

            episode = await self._distill(batch)
            if episode is None:
                return None

            # StoreError propagates with the batch still buffered
            await self.store.save_episode(episode)

            # Only this method removes events, so the batch is still the buffer prefix
            async with self._buffer_lock:
                del self._buffer[: len(batch)]

            logger.info(
                f"Formed episode {episode.id} from {len(batch)} events "
                f"(importance={episode.importance:.2f}, emotion={episode.emotion:+.2f})"
            )
            return episode

    async def _distill(self, batch: list[ChatEvent]) -> Episode | None:
        """Summarize, score and embed a batch. Returns None on oracle failure."""
        transcript = "\n".join(format_event(e, self.agent_name) for e in batch)
        messages = [
            {"role": "system", "content": SUMMARIZE_SYSTEM.format(name=self.agent_name)},
            {"role": "user", "content": SUMMARIZE_USER.format(transcript=transcript)},
        ]

        try:
            payload = await bounded(
                self.generator.generate(messages, schema=EPISODE_SCHEMA),
                self.timeout,
                "episode summarization",
            )
            scoring = parse_episode_scoring(payload)
            embedding = await bounded(
                self.embedder.embed(scoring.summary, EmbeddingTaskType.RETRIEVAL_DOCUMENT),
                self.timeout,
                "episode embedding",
            )
        except (OracleError, ValidationError) as e:
            logger.error(f"Episode formation aborted, keeping {len(batch)} events buffered: {e}")
            return None

        return Episode(
            summary=scoring.summary,
            embedding=embedding,
            timestamp=self.clock(),
            importance=scoring.importance,
            emotion=scoring.emotion,
            event_ids=[e.id for e in batch],
        )
