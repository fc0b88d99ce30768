"""Oracle clients and structured-output decoding.

Usage:
    from episteme.ai import EmbeddingClient, EmbeddingTaskType, GenerationClient

    generator = GenerationClient(endpoint, api_key, model)
    data = await generator.generate(messages, schema=EPISODE_SCHEMA)

    embedder = EmbeddingClient(api_key, dimension=768)
    vector = await embedder.embed("hello", EmbeddingTaskType.RETRIEVAL_QUERY)
"""

from episteme.ai.oracle import (
    EmbeddingOracle,
    EmbeddingTaskType,
    GenerationOracle,
    bounded,
)
from episteme.ai.schemas import (
    EpisodeScoring,
    Insight,
    InsightProposal,
    PersonaUpdate,
    parse_episode_scoring,
    parse_insight_proposal,
    parse_persona_update,
)
from episteme.ai.generation import GenerationClient
from episteme.ai.embedding import EmbeddingClient

__all__ = [
    # Contracts
    "EmbeddingOracle",
    "EmbeddingTaskType",
    "GenerationOracle",
    "bounded",
    # Clients
    "EmbeddingClient",
    "GenerationClient",
    # Structured output
    "EpisodeScoring",
    "Insight",
    "InsightProposal",
    "PersonaUpdate",
    "parse_episode_scoring",
    "parse_insight_proposal",
    "parse_persona_update",
]
