"""Memory system: working memory, episodes, gating and retrieval.

Usage:
    from episteme.memory import WorkingMemory, MemoryRetriever

    retriever = MemoryRetriever(embedder, store)
    episodes = await retriever.retrieve(event)
"""

from episteme.memory.episodic import EpisodeFormation
from episteme.memory.gate import ReplyGate
from episteme.memory.prompt import build_prompt, format_event
from episteme.memory.retriever import MemoryRetriever
from episteme.memory.scoring import MemoryScorer, cosine_similarity, l2_normalize, sigmoid
from episteme.memory.self_concept import SelfConceptTracker
from episteme.memory.types import Belief, ChatEvent, Episode, Persona, ScoredEpisode
from episteme.memory.working import WorkingMemory

__all__ = [
    # Types
    "Belief",
    "ChatEvent",
    "Episode",
    "Persona",
    "ScoredEpisode",
    # Components
    "EpisodeFormation",
    "MemoryRetriever",
    "MemoryScorer",
    "ReplyGate",
    "SelfConceptTracker",
    "WorkingMemory",
    # Helpers
    "build_prompt",
    "cosine_similarity",
    "format_event",
    "l2_normalize",
    "sigmoid",
]
