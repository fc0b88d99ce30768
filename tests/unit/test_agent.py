"""End-to-end tests for the MemoryAgent facade with fake oracles."""

import asyncio

import pytest

from episteme.agent import MemoryAgent
from episteme.config import DAY_SECONDS, EpisodeConfig, MemoryConfig
from episteme.db.memory import InMemoryStore
from episteme.db.store import BORN_AT_KEY
from episteme.errors import StoreError
from episteme.memory.types import Belief, Persona

from conftest import NOW, unit


class ManualTrigger:
    """Fires a reflection cycle each time fire() is called."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()

    async def wait(self) -> None:
        await self.queue.get()

    def fire(self) -> None:
        self.queue.put_nowait(None)


@pytest.fixture
def config():
    config = MemoryConfig()
    config.episode = EpisodeConfig(creation_threshold=3, creation_timeout=300.0)
    return config


@pytest.fixture
def agent(generator, embedder, store, config, clock):
    return MemoryAgent(generator, embedder, store, config=config, rng=lambda: 0.5, clock=clock)


class TestLifecycle:
    """Tests for start, shutdown and restart."""

    @pytest.mark.asyncio
    async def test_start_seeds_persona_and_birth(self, agent, store):
        await agent.start(schedule_reflection=False)

        assert await store.get_persona() == agent.default_persona
        assert await store.get_meta(BORN_AT_KEY) == str(NOW)
        assert agent.born_at == NOW

    @pytest.mark.asyncio
    async def test_restart_keeps_persona_and_age(self, generator, embedder, store, config, clock):
        custom = Persona(description="Grown up.", communication_style="Terse.")
        await store.save_persona(custom)
        await store.set_meta(BORN_AT_KEY, str(NOW - 3 * DAY_SECONDS))

        agent = MemoryAgent(generator, embedder, store, config=config, clock=clock)
        await agent.start(schedule_reflection=False)

        assert await store.get_persona() == custom
        assert agent.born_at == NOW - 3 * DAY_SECONDS
        assert (await agent.status())["age_days"] == 3

    @pytest.mark.asyncio
    async def test_shutdown_flushes_buffer(self, agent, store, make_event):
        await agent.start(schedule_reflection=False)
        await agent.ingest(make_event("one"))

        await agent.shutdown()

        [episode] = await store.recent_episodes(5)
        assert episode.event_ids == ["evt-1"]
        assert len(agent.episodes) == 0

    @pytest.mark.asyncio
    async def test_shutdown_without_flush(self, agent, store, make_event):
        await agent.start(schedule_reflection=False)
        await agent.ingest(make_event("one"))

        await agent.shutdown(flush=False)

        assert await store.recent_episodes(5) == []

    @pytest.mark.asyncio
    async def test_flush_store_error_is_logged(self, agent, store, make_event, caplog):
        await agent.start(schedule_reflection=False)
        await agent.ingest(make_event("one"))
        store.save_episode = _raise_store_error

        await agent.shutdown()

        assert "Could not persist buffered events" in caplog.text

    @pytest.mark.asyncio
    async def test_scheduler_runs_reflection(self, generator, embedder, store, config, clock):
        trigger = ManualTrigger()
        agent = MemoryAgent(generator, embedder, store, config=config, trigger=trigger, clock=clock)
        await agent.start()
        assert agent.scheduler.running

        trigger.fire()
        for _ in range(50):
            if agent.scheduler.cycles_run:
                break
            await asyncio.sleep(0)

        assert agent.scheduler.cycles_run == 1
        await agent.shutdown()
        assert not agent.scheduler.running

    def test_from_config_without_dsn_uses_memory_store(self, config):
        config.postgres_dsn = None
        config.oracle.embedding_dim = 16

        agent = MemoryAgent.from_config(config)

        assert isinstance(agent.store, InMemoryStore)
        assert agent.store.dimension == 16
        assert agent._owns_resources


async def _raise_store_error(episode):
    raise StoreError("disk full")


class TestLivePath:
    """Tests for ingest, gating, retrieval and prompt assembly."""

    @pytest.mark.asyncio
    async def test_ingest_forms_episode_at_threshold(self, agent, store, make_event):
        await agent.start(schedule_reflection=False)

        assert await agent.ingest(make_event("a")) is None
        assert await agent.ingest(make_event("b")) is None
        episode = await agent.ingest(make_event("c"))

        assert episode is not None
        assert episode.event_ids == ["evt-1", "evt-2", "evt-3"]
        assert len(agent.working_memory) == 3
        assert await store.count_episodes_since(0) == 1

    @pytest.mark.asyncio
    async def test_mention_always_answered(self, agent, make_event):
        assert await agent.should_respond(make_event("hey Gary", is_mention=True))

    @pytest.mark.asyncio
    async def test_no_self_concept_stays_quiet(self, agent, make_event):
        assert not await agent.should_respond(make_event("anyone around?"))

    @pytest.mark.asyncio
    async def test_asleep_never_replies(self, agent, make_event):
        agent.sleep()
        assert agent.asleep
        assert not await agent.should_respond(make_event("hey Gary", is_mention=True))

        agent.wake()
        assert await agent.should_respond(make_event("hey Gary", is_mention=True))

    @pytest.mark.asyncio
    async def test_asleep_still_ingests(self, agent, make_event):
        agent.sleep()
        await agent.ingest(make_event("still listening"))
        assert len(agent.working_memory) == 1

    @pytest.mark.asyncio
    async def test_relevant_message_answered_after_speaking(self, agent, embedder, make_event):
        embedder.vectors["I love talking about startups."] = unit(1.0)
        embedder.vectors["What do you think of startups?"] = unit(1.0)

        await agent.record_own_message(make_event("I love talking about startups.", author_id="me"))

        assert await agent.should_respond(make_event("What do you think of startups?"))

    @pytest.mark.asyncio
    async def test_record_own_message(self, agent, make_event):
        await agent.record_own_message(make_event("Hello, I'm Gary."))

        [event] = agent.working_memory.events()
        assert event.is_own
        assert agent.self_concept.count == 1
        assert agent.self_concept.has_concept

    @pytest.mark.asyncio
    async def test_own_messages_join_episodes(self, agent, generator, make_event):
        await agent.ingest(make_event("What do you think of YC?"))
        await agent.ingest(make_event("Anyone?", author_name="Bob", author_id="7"))

        episode = await agent.record_own_message(
            make_event("YC is great for first-time founders.", author_id="me")
        )

        assert episode is not None
        assert episode.event_ids == ["evt-1", "evt-2", "evt-3"]
        transcript = generator.generate.await_args.args[0][1]["content"]
        assert "[Alice <@42>] What do you think of YC?" in transcript
        assert "[Gary <@me>] YC is great for first-time founders." in transcript
        assert agent.self_concept.count == 1

    @pytest.mark.asyncio
    async def test_own_message_store_error_propagates(self, agent, store, make_event):
        await agent.ingest(make_event("one"))
        await agent.ingest(make_event("two"))
        store.save_episode = _raise_store_error

        with pytest.raises(StoreError):
            await agent.record_own_message(make_event("three"))

        assert len(agent.episodes) == 3
        assert agent.self_concept.count == 1

    @pytest.mark.asyncio
    async def test_retrieve_context_tracks_usage(self, agent, store, embedder, make_event, make_episode):
        episode = make_episode(summary="We discussed YC.", embedding=unit(1.0))
        await store.save_episode(episode)
        embedder.vectors["Remember YC?"] = unit(1.0)

        recalled = await agent.retrieve_context(make_event("Remember YC?"))
        await agent.retriever.drain()

        assert [e.id for e in recalled] == [episode.id]
        assert (await store.get_episode(episode.id)).usage_count == 1

    @pytest.mark.asyncio
    async def test_build_prompt(self, agent, store, clock, make_event, make_episode):
        await agent.start(schedule_reflection=False)
        await store.save_belief(Belief(statement="I like YC.", confidence=0.8))
        await agent.ingest(make_event("Morning all", author_name="Alice", author_id="42"))
        clock.advance(2 * DAY_SECONDS)

        prompt = await agent.build_prompt([make_episode(summary="We discussed YC.", timestamp=NOW)])

        assert prompt.startswith("You are Gary.")
        assert "You are 2 days old." in prompt
        assert "- I like YC. (confidence 80%)" in prompt
        assert "(2 days ago) We discussed YC." in prompt
        assert "[Alice <@42>] Morning all" in prompt

    @pytest.mark.asyncio
    async def test_status(self, agent, make_event):
        await agent.start(schedule_reflection=False)
        await agent.ingest(make_event("hi"))
        agent.sleep()

        status = await agent.status()

        assert status["name"] == "Gary"
        assert status["asleep"] is True
        assert status["age_days"] == 0
        assert status["buffered_events"] == 1
        assert status["working_memory"]["size"] == 1
        assert status["self_concept_messages"] == 0
        assert status["reflection_running"] is False
        assert status["scheduler_running"] is False
        assert status["persona"] == agent.default_persona.to_dict()

    @pytest.mark.asyncio
    async def test_run_reflection_cycle_skips_without_episodes(self, agent):
        await agent.start(schedule_reflection=False)
        result = await agent.run_reflection_cycle()
        assert result.skipped
