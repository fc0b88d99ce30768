"""Configuration for the memory subsystem.

Every tunable lives in a small dataclass grouped under MemoryConfig.
All values can be overridden via environment variables with prefix EPISTEME_.
Example: EPISTEME_GATE_SHYNESS=-3 makes the agent quieter.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum

DAY_SECONDS = 86400.0


class GatePolicy(str, Enum):
    """How the reply gate treats direct mentions."""

    HARD_BYPASS = "hard_bypass"  # Mentions always get a reply
    MENTION_BONUS = "mention_bonus"  # Mentions add eta2 to the logistic exponent


@dataclass
class WorkingMemoryConfig:
    """Recency buffer sizing."""

    capacity: int = 10  # k: most recent events kept for the prompt


@dataclass
class EpisodeConfig:
    """Episode formation triggers."""

    creation_threshold: int = 10  # Buffered events that force a new episode
    creation_timeout: float = 300.0  # Idle seconds before a partial batch is formed


@dataclass
class GateConfig:
    """Logistic reply gate parameters.

    P(reply) = sigmoid(shyness + relevance_weight * rho [+ mention_bonus])
    """

    policy: GatePolicy = GatePolicy.HARD_BYPASS
    shyness: float = -2.0  # eta0: negative values make the agent quieter
    relevance_weight: float = 5.0  # eta1
    mention_bonus: float = 5.0  # eta2, only used by MENTION_BONUS


@dataclass
class RetrievalConfig:
    """Composite retrieval scoring.

    S = alpha*recency + beta*decayed_importance + gamma*relevance + delta*usage
    """

    top_n: int = 5
    oversample_factor: int = 3  # Candidates fetched = top_n * oversample_factor
    decay_tau: float = 7 * DAY_SECONDS  # tau in seconds
    alpha: float = 1.0  # Recency weight
    beta: float = 1.0  # Decayed importance weight
    gamma: float = 1.0  # Relevance weight
    delta: float = 0.5  # Usage weight
    forget_threshold: float = 0.05  # Decayed importance below this is forgotten


@dataclass
class ReflectionConfig:
    """Nightly consolidation job."""

    recent_episodes: int = 50  # M
    min_new_episodes: int = 10
    max_insights: int = 3
    interval_seconds: float = DAY_SECONDS


@dataclass
class OracleConfig:
    """Generation and embedding providers."""

    generation_endpoint: str = "https://api.groq.com/openai/v1/chat/completions"
    generation_model: str = "llama-3.1-8b-instant"
    generation_api_key: str = ""
    embedding_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    embedding_model: str = "gemini-embedding-001"
    embedding_api_key: str = ""
    embedding_dim: int = 768
    timeout: float = 30.0  # Per-call budget, seconds


@dataclass
class PersonaConfig:
    """Static identity used to seed the persona at first run."""

    name: str = "Gary"
    description: str = (
        "A curious, good-natured regular in this community who likes startups, "
        "technology and a well-argued opinion."
    )
    communication_style: str = (
        "Concise, thoughtful and friendly. Uses decent grammar and capitalization."
    )


@dataclass
class MemoryConfig:
    """Aggregated configuration for one agent instance."""

    working: WorkingMemoryConfig = field(default_factory=WorkingMemoryConfig)
    episode: EpisodeConfig = field(default_factory=EpisodeConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    reflection: ReflectionConfig = field(default_factory=ReflectionConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    persona: PersonaConfig = field(default_factory=PersonaConfig)
    postgres_dsn: str | None = None  # None selects the in-process store

    @classmethod
    def from_env(cls) -> "MemoryConfig":
        """Load configuration from environment variables with defaults."""
        config = cls()

        # Working memory / episodes
        if val := os.environ.get("EPISTEME_WORKING_MEMORY_SIZE"):
            config.working.capacity = int(val)
        if val := os.environ.get("EPISTEME_EPISODE_THRESHOLD"):
            config.episode.creation_threshold = int(val)
        if val := os.environ.get("EPISTEME_EPISODE_TIMEOUT"):
            config.episode.creation_timeout = float(val)

        # Gate
        if val := os.environ.get("EPISTEME_GATE_POLICY"):
            config.gate.policy = GatePolicy(val)
        if val := os.environ.get("EPISTEME_GATE_SHYNESS"):
            config.gate.shyness = float(val)
        if val := os.environ.get("EPISTEME_GATE_RELEVANCE"):
            config.gate.relevance_weight = float(val)
        if val := os.environ.get("EPISTEME_GATE_MENTION_BONUS"):
            config.gate.mention_bonus = float(val)

        # Retrieval
        if val := os.environ.get("EPISTEME_RETRIEVAL_TOP_N"):
            config.retrieval.top_n = int(val)
        if val := os.environ.get("EPISTEME_DECAY_TAU"):
            config.retrieval.decay_tau = float(val)
        if val := os.environ.get("EPISTEME_WEIGHT_RECENCY"):
            config.retrieval.alpha = float(val)
        if val := os.environ.get("EPISTEME_WEIGHT_IMPORTANCE"):
            config.retrieval.beta = float(val)
        if val := os.environ.get("EPISTEME_WEIGHT_RELEVANCE"):
            config.retrieval.gamma = float(val)
        if val := os.environ.get("EPISTEME_WEIGHT_USAGE"):
            config.retrieval.delta = float(val)

        # Reflection
        if val := os.environ.get("EPISTEME_REFLECTION_EPISODES"):
            config.reflection.recent_episodes = int(val)
        if val := os.environ.get("EPISTEME_REFLECTION_MIN_EPISODES"):
            config.reflection.min_new_episodes = int(val)
        if val := os.environ.get("EPISTEME_REFLECTION_INTERVAL"):
            config.reflection.interval_seconds = float(val)

        # Oracles
        if val := os.environ.get("EPISTEME_GENERATION_ENDPOINT"):
            config.oracle.generation_endpoint = val
        if val := os.environ.get("EPISTEME_GENERATION_MODEL"):
            config.oracle.generation_model = val
        if val := os.environ.get("EPISTEME_GENERATION_API_KEY"):
            config.oracle.generation_api_key = val
        if val := os.environ.get("EPISTEME_EMBEDDING_MODEL"):
            config.oracle.embedding_model = val
        if val := os.environ.get("EPISTEME_EMBEDDING_API_KEY"):
            config.oracle.embedding_api_key = val
        if val := os.environ.get("EPISTEME_EMBEDDING_DIM"):
            config.oracle.embedding_dim = int(val)
        if val := os.environ.get("EPISTEME_ORACLE_TIMEOUT"):
            config.oracle.timeout = float(val)

        # Persona seed
        if val := os.environ.get("EPISTEME_PERSONA_NAME"):
            config.persona.name = val
        if val := os.environ.get("EPISTEME_PERSONA_DESCRIPTION"):
            config.persona.description = val
        if val := os.environ.get("EPISTEME_PERSONA_STYLE"):
            config.persona.communication_style = val

        if val := os.environ.get("EPISTEME_POSTGRES_DSN"):
            config.postgres_dsn = val

        return config
