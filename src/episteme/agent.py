"""Per-agent memory facade.

MemoryAgent wires every memory component for one logical agent and exposes
the operations a chat transport needs:

    agent = MemoryAgent.from_config(MemoryConfig.from_env())
    await agent.start()

    # For every incoming message
    await agent.ingest(event)
    if await agent.should_respond(event):
        episodes = await agent.retrieve_context(event)
        system_prompt = await agent.build_prompt(episodes)
        ...  # generate and send the reply
        await agent.record_own_message(reply_event)

    await agent.shutdown()

All mutable state is owned by the instance, so several agents (or test
harnesses) can share a process without interfering.
"""

from __future__ import annotations

import dataclasses
import logging
import random
import time
from typing import Any, Callable

from episteme.ai.embedding import EmbeddingClient
from episteme.ai.generation import GenerationClient
from episteme.ai.oracle import EmbeddingOracle, GenerationOracle
from episteme.config import DAY_SECONDS, MemoryConfig
from episteme.db.memory import InMemoryStore
from episteme.db.postgres import PostgresStore
from episteme.db.store import BORN_AT_KEY, MemoryStore
from episteme.errors import StoreError
from episteme.memory.episodic import EpisodeFormation
from episteme.memory.gate import ReplyGate
from episteme.memory.prompt import MAX_BELIEFS, build_prompt
from episteme.memory.retriever import MemoryRetriever
from episteme.memory.self_concept import SelfConceptTracker
from episteme.memory.types import ChatEvent, Episode, Persona
from episteme.memory.working import WorkingMemory
from episteme.reflection.engine import ReflectionEngine, ReflectionResult
from episteme.reflection.scheduler import IntervalTrigger, ReflectionScheduler, Trigger

logger = logging.getLogger(__name__)


class MemoryAgent:
    """One agent's working memory, episodes, beliefs and persona."""

    def __init__(
        self,
        generator: GenerationOracle,
        embedder: EmbeddingOracle,
        store: MemoryStore,
        config: MemoryConfig | None = None,
        trigger: Trigger | None = None,
        rng: Callable[[], float] = random.random,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the agent.

        Args:
            generator: Generation oracle
            embedder: Embedding oracle
            store: Persistent store
            config: Memory configuration (default: built-in defaults)
            trigger: Reflection trigger (default: every reflection interval)
            rng: Uniform sample source for the reply gate
            clock: Source of unix time
        """
        self.config = config or MemoryConfig()
        self.generator = generator
        self.embedder = embedder
        self.store = store
        self.clock = clock
        self.name = self.config.persona.name

        timeout = self.config.oracle.timeout
        self.default_persona = Persona(
            description=self.config.persona.description,
            communication_style=self.config.persona.communication_style,
        )

        self.working_memory = WorkingMemory(self.config.working.capacity)
        self.self_concept = SelfConceptTracker(embedder, timeout=timeout)
        self.episodes = EpisodeFormation(
            generator,
            embedder,
            store,
            config=self.config.episode,
            agent_name=self.name,
            timeout=timeout,
            clock=clock,
        )
        self.gate = ReplyGate(
            embedder, self.self_concept, config=self.config.gate, timeout=timeout, rng=rng
        )
        self.retriever = MemoryRetriever(
            embedder, store, config=self.config.retrieval, timeout=timeout, clock=clock
        )
        self.reflection = ReflectionEngine(
            generator,
            store,
            config=self.config.reflection,
            agent_name=self.name,
            default_persona=self.default_persona,
            timeout=timeout,
            clock=clock,
        )
        self.scheduler = ReflectionScheduler(
            trigger or IntervalTrigger(self.config.reflection.interval_seconds),
            self.reflection.run_reflection_cycle,
        )

        self.born_at: float | None = None
        self._asleep = False
        self._owns_resources = False

    @classmethod
    def from_config(cls, config: MemoryConfig | None = None) -> MemoryAgent:
        """Build an agent with HTTP oracle clients and the configured store.

        The agent owns the clients and store it creates and closes them on
        shutdown. Without a Postgres DSN the in-process store is used.
        """
        config = config or MemoryConfig.from_env()
        if config.postgres_dsn:
            store: MemoryStore = PostgresStore(config.postgres_dsn, dimension=config.oracle.embedding_dim)
        else:
            logger.warning("No Postgres DSN configured, memories will not survive a restart")
            store = InMemoryStore(dimension=config.oracle.embedding_dim)

        agent = cls(
            GenerationClient.from_config(config.oracle),
            EmbeddingClient.from_config(config.oracle),
            store,
            config=config,
        )
        agent._owns_resources = True
        return agent

    # Lifecycle

    async def start(self, schedule_reflection: bool = True) -> None:
        """Prepare the store, seed the persona and start reflection.

        Raises:
            StoreError: If schema setup fails
        """
        await self.store.ensure_schema()

        if await self.store.get_persona() is None:
            await self.store.save_persona(self.default_persona)
            logger.info(f"Seeded persona for {self.name}")

        born_at = await self.store.get_meta(BORN_AT_KEY)
        if born_at is None:
            self.born_at = self.clock()
            await self.store.set_meta(BORN_AT_KEY, str(self.born_at))
        else:
            self.born_at = float(born_at)

        if schedule_reflection:
            self.scheduler.start()
        logger.info(f"Memory agent {self.name} started (store={type(self.store).__name__})")

    async def shutdown(self, flush: bool = True) -> None:
        """Stop reflection, settle background work and release resources.

        Args:
            flush: Form an episode from any buffered events first
        """
        await self.scheduler.stop(graceful=True)
        await self.retriever.drain()

        if flush:
            try:
                await self.episodes.flush()
            except StoreError as e:
                logger.error(f"Could not persist buffered events on shutdown: {e}")

        if self._owns_resources:
            for resource in (self.generator, self.embedder, self.store):
                await resource.close()
        logger.info(f"Memory agent {self.name} shut down")

    # Live path

    async def ingest(self, event: ChatEvent) -> Episode | None:
        """Record an incoming event in working memory and the episode buffer.

        Returns:
            The episode formed by this event, if any

        Raises:
            StoreError: If saving a formed episode fails
        """
        self.working_memory.record(event)
        return await self.episodes.add(event)

    async def should_respond(self, event: ChatEvent) -> bool:
        """Whether to reply to an event. Always False while asleep."""
        if self._asleep:
            return False
        return await self.gate.decide(event)

    async def retrieve_context(self, event: ChatEvent) -> list[Episode]:
        """Episodes worth recalling for a reply to the event.

        Raises:
            OracleError: If the query embedding fails
            StoreError: If the similarity search fails
        """
        return await self.retriever.retrieve(event)

    async def build_prompt(self, episodes: list[Episode], now: float | None = None) -> str:
        """System prompt from working memory, recalled episodes, beliefs and persona."""
        beliefs = await self.store.top_beliefs(MAX_BELIEFS)
        persona = await self.store.get_persona() or self.default_persona
        return build_prompt(
            self.working_memory,
            episodes,
            beliefs,
            persona,
            agent_name=self.name,
            now=self.clock() if now is None else now,
            born_at=self.born_at,
        )

    async def record_own_message(self, event: ChatEvent) -> Episode | None:
        """Record something the agent said and fold it into the self-concept.

        The message joins working memory and the episode buffer like any
        other event, so episodes include the agent's own turns.

        Returns:
            The episode formed by this message, if any

        Raises:
            StoreError: If saving a formed episode fails (the self-concept is
                still updated)
            OracleError: If the self-concept embedding fails (the message is
                still recorded and buffered)
        """
        if not event.is_own:
            event = dataclasses.replace(event, is_own=True)
        self.working_memory.record(event)
        try:
            episode = await self.episodes.add(event)
        finally:
            await self.self_concept.update(event.content)
        return episode

    async def run_reflection_cycle(self) -> ReflectionResult:
        """Run one reflection cycle now."""
        return await self.reflection.run_reflection_cycle()

    # Sleep / status

    @property
    def asleep(self) -> bool:
        return self._asleep

    def sleep(self) -> None:
        """Stop replying. Events are still ingested."""
        self._asleep = True
        logger.info(f"{self.name} is asleep")

    def wake(self) -> None:
        self._asleep = False
        logger.info(f"{self.name} is awake")

    async def status(self) -> dict[str, Any]:
        """Snapshot of the agent's state."""
        persona = await self.store.get_persona() or self.default_persona
        age_days = None
        if self.born_at is not None:
            age_days = int(max(0.0, self.clock() - self.born_at) // DAY_SECONDS)

        return {
            "name": self.name,
            "asleep": self._asleep,
            "age_days": age_days,
            "persona": persona.to_dict(),
            "working_memory": self.working_memory.get_summary(),
            "buffered_events": len(self.episodes),
            "self_concept_messages": self.self_concept.count,
            "pending_usage_updates": self.retriever.pending,
            "reflection_running": self.reflection.running,
            "scheduler_running": self.scheduler.running,
            "reflection_cycles": self.scheduler.cycles_run,
        }
