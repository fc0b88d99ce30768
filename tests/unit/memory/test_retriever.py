"""Tests for the memory retriever."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from episteme.ai.oracle import EmbeddingTaskType
from episteme.config import DAY_SECONDS, RetrievalConfig
from episteme.errors import OracleError, StoreError
from episteme.memory.retriever import MemoryRetriever

from conftest import unit


@pytest.fixture
def retriever(embedder, store, clock):
    return MemoryRetriever(embedder, store, config=RetrievalConfig(top_n=2), clock=clock)


class TestRetrieve:
    """Tests for ranking and oversampling."""

    @pytest.mark.asyncio
    async def test_returns_best_first(self, retriever, embedder, store, make_episode, clock):
        embedder.vectors["startups?"] = unit(1.0)
        close = make_episode(summary="close", embedding=unit(1.0), timestamp=clock())
        medium = make_episode(summary="medium", embedding=unit(1.0, 1.0), timestamp=clock())
        far = make_episode(summary="far", embedding=unit(0.0, 1.0), timestamp=clock())
        for ep in (far, medium, close):
            await store.save_episode(ep)

        results = await retriever.retrieve("startups?")

        assert [e.summary for e in results] == ["close", "medium"]
        embedder.embed.assert_awaited_once_with("startups?", EmbeddingTaskType.RETRIEVAL_QUERY)

    @pytest.mark.asyncio
    async def test_accepts_events(self, retriever, store, make_episode, make_event):
        await store.save_episode(make_episode())
        results = await retriever.retrieve(make_event(content="anything"))
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_oversamples_candidates(self, retriever, store):
        store.search_episodes = AsyncMock(return_value=[])
        await retriever.retrieve("q")
        assert store.search_episodes.await_args.kwargs["limit"] == 2 * 3

    @pytest.mark.asyncio
    async def test_drops_forgotten(self, retriever, store, make_episode, clock):
        await store.save_episode(make_episode(summary="ancient", timestamp=clock() - 60 * DAY_SECONDS))
        assert await retriever.retrieve("q") == []

    @pytest.mark.asyncio
    async def test_scored_breakdown(self, retriever, embedder, store, make_episode, clock):
        embedder.vectors["q"] = unit(1.0)
        await store.save_episode(make_episode(embedding=unit(1.0), importance=0.5, timestamp=clock()))

        [scored] = await retriever.retrieve_scored("q")

        assert scored.recency == pytest.approx(1.0)
        assert scored.decayed_importance == pytest.approx(0.5)
        assert scored.relevance == pytest.approx(1.0)
        assert scored.usage == 0.0
        assert scored.score == pytest.approx(1.0 + 0.5 + 1.0)

    @pytest.mark.asyncio
    async def test_top_n_override(self, retriever, store, make_episode):
        for i in range(4):
            await store.save_episode(make_episode(summary=str(i)))
        assert len(await retriever.retrieve("q", top_n=3)) == 3
        assert await retriever.retrieve("q", top_n=0) == []

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, retriever, embedder):
        embedder.embed.side_effect = OracleError("down")
        with pytest.raises(OracleError):
            await retriever.retrieve("q")

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, retriever, store):
        store.search_episodes = AsyncMock(side_effect=StoreError("gone"))
        with pytest.raises(StoreError):
            await retriever.retrieve("q")


class TestUsageTracking:
    """Tests for background usage increments."""

    @pytest.mark.asyncio
    async def test_usage_incremented_for_returned_episodes(self, retriever, embedder, store, make_episode):
        embedder.vectors["q"] = unit(1.0)
        hit = make_episode(summary="hit", embedding=unit(1.0))
        miss = make_episode(summary="miss", embedding=unit(0.0, 1.0))
        other = make_episode(summary="other", embedding=unit(1.0, 0.2))
        for ep in (hit, miss, other):
            await store.save_episode(ep)

        returned = await retriever.retrieve("q")
        await retriever.drain()

        returned_ids = {e.id for e in returned}
        for ep in (hit, miss, other):
            stored = await store.get_episode(ep.id)
            assert stored.usage_count == (1 if ep.id in returned_ids else 0)

    @pytest.mark.asyncio
    async def test_caller_does_not_wait_for_usage(self, retriever, store, make_episode):
        release = asyncio.Event()

        async def blocked(episode_id):
            await release.wait()

        await store.save_episode(make_episode())
        store.increment_usage = AsyncMock(side_effect=blocked)

        results = await retriever.retrieve("q")

        assert len(results) == 1
        assert retriever.pending == 1
        release.set()
        await retriever.drain()
        assert retriever.pending == 0

    @pytest.mark.asyncio
    async def test_usage_failure_is_swallowed(self, retriever, store, make_episode, caplog):
        await store.save_episode(make_episode())
        store.increment_usage = AsyncMock(side_effect=StoreError("write failed"))

        results = await retriever.retrieve("q")
        await retriever.drain()

        assert len(results) == 1
        assert "Failed to increment usage" in caplog.text
