"""Tests for the memory data model."""

import numpy as np
import pytest

from episteme.memory.types import Belief, ChatEvent, Episode, Persona, ScoredEpisode

from conftest import NOW, unit


class TestEpisode:
    """Tests for Episode invariants."""

    def test_scores_are_clamped(self):
        """Importance and emotion are clamped into their ranges."""
        ep = Episode(summary="s", embedding=unit(1.0), timestamp=NOW, importance=1.7, emotion=-3.0)
        assert ep.importance == 1.0
        assert ep.emotion == -1.0

        ep = Episode(summary="s", embedding=unit(1.0), timestamp=NOW, importance=-0.2, emotion=2.0)
        assert ep.importance == 0.0
        assert ep.emotion == 1.0

    def test_negative_usage_rejected(self):
        with pytest.raises(ValueError):
            Episode(summary="s", embedding=unit(1.0), timestamp=NOW, importance=0.5, emotion=0.0, usage_count=-1)

    def test_embedding_coerced_to_float_array(self):
        ep = Episode(summary="s", embedding=[1, 0, 0], timestamp=NOW, importance=0.5, emotion=0.0)
        assert isinstance(ep.embedding, np.ndarray)
        assert ep.embedding.dtype == np.float64

    def test_dict_round_trip_preserves_fields(self):
        ep = Episode(
            summary="I met Bob",
            embedding=unit(0.6, 0.8),
            timestamp=NOW,
            importance=0.4,
            emotion=0.2,
            usage_count=3,
            event_ids=["a", "b"],
        )
        restored = Episode.from_dict(ep.to_dict())
        assert restored.id == ep.id
        assert restored.usage_count == 3
        assert restored.event_ids == ["a", "b"]
        np.testing.assert_allclose(restored.embedding, ep.embedding)


class TestBeliefReinforcement:
    """Tests for the noisy-OR confidence update."""

    def test_worked_example(self):
        """0.5 prior with 0.4 importance gives 1 - 0.5*0.6 = 0.7."""
        belief = Belief(statement="I like founders", confidence=0.5)
        belief.reinforce(0.4, "ep-1", now=NOW)
        assert belief.confidence == pytest.approx(0.7)

    @pytest.mark.parametrize("prior", [0.0, 0.3, 0.99, 1.0])
    @pytest.mark.parametrize("importance", [0.0, 0.2, 1.0])
    def test_confidence_never_decreases(self, prior, importance):
        belief = Belief(statement="x", confidence=prior)
        belief.reinforce(importance, "ep-1")
        assert belief.confidence >= prior

    def test_strictly_increases_for_positive_importance(self):
        belief = Belief(statement="x", confidence=0.8)
        belief.reinforce(0.01, "ep-1")
        assert belief.confidence > 0.8

    def test_supporting_episode_appended_once(self):
        belief = Belief(statement="x", confidence=0.5, supporting_episodes=["ep-1"])
        belief.reinforce(0.3, "ep-1")
        belief.reinforce(0.3, "ep-2")
        assert belief.supporting_episodes == ["ep-1", "ep-2"]

    def test_updated_at_bumped(self):
        belief = Belief(statement="x", confidence=0.5, created_at=NOW, updated_at=NOW)
        belief.reinforce(0.3, "ep-1", now=NOW + 60)
        assert belief.updated_at == NOW + 60
        assert belief.created_at == NOW


class TestSerialization:
    """Tests for to_dict / from_dict on the smaller types."""

    def test_chat_event_defaults(self):
        event = ChatEvent.from_dict(
            {"id": 1, "author_id": 2, "author_name": "Ann", "timestamp": "5", "content": "hi"}
        )
        assert event.id == "1"
        assert event.timestamp == 5.0
        assert event.is_mention is False
        assert event.is_own is False

    def test_persona_layout(self):
        persona = Persona(description="d", communication_style="c")
        assert persona.to_dict() == {"description": "d", "communication_style": "c"}
        assert Persona.from_dict(persona.to_dict()) == persona

    def test_scored_episode_omits_embedding(self):
        ep = Episode(summary="s", embedding=unit(1.0), timestamp=NOW, importance=0.5, emotion=0.0)
        scored = ScoredEpisode(ep, recency=1.0, decayed_importance=0.5, relevance=0.9, usage=0.0, score=2.4)
        data = scored.to_dict()
        assert "embedding" not in data
        assert data["episode_id"] == ep.id
        assert data["score"] == 2.4
