"""Episteme: persistent memory for a conversational agent.

Working memory, episodic consolidation, a logistic reply gate, composite
retrieval scoring and nightly reflection into beliefs and persona.
"""

from episteme.agent import MemoryAgent
from episteme.config import MemoryConfig
from episteme.memory.types import Belief, ChatEvent, Episode, Persona

__all__ = [
    "Belief",
    "ChatEvent",
    "Episode",
    "MemoryAgent",
    "MemoryConfig",
    "Persona",
]

__version__ = "0.1.0"
