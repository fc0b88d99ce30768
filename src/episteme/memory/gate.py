"""Reply gate deciding whether the agent speaks.

P(reply) = sigmoid(shyness + relevance_weight * rho)

where rho is the cosine between the incoming message and the agent's
self-concept. The decision is a single Bernoulli draw, so identical inputs
can produce different answers.

Policies:
- HARD_BYPASS: direct mentions always get a reply, no scoring
- MENTION_BONUS: mentions add mention_bonus to the exponent instead
"""

from __future__ import annotations

import logging
import random
from typing import Callable

from episteme.ai.oracle import EmbeddingOracle, EmbeddingTaskType, bounded
from episteme.config import GateConfig, GatePolicy
from episteme.errors import OracleError
from episteme.memory.scoring import cosine_similarity, l2_normalize, sigmoid
from episteme.memory.self_concept import SelfConceptTracker
from episteme.memory.types import ChatEvent

logger = logging.getLogger(__name__)


class ReplyGate:
    """Stochastic logistic gate over self-concept relevance."""

    def __init__(
        self,
        embedder: EmbeddingOracle,
        self_concept: SelfConceptTracker,
        config: GateConfig | None = None,
        timeout: float = 30.0,
        rng: Callable[[], float] = random.random,
    ):
        """Initialize the gate.

        Args:
            embedder: Embedding oracle for the incoming message
            self_concept: Tracker holding the agent's own-voice vector
            config: Policy and logistic parameters
            timeout: Budget for the embedding call in seconds
            rng: Uniform [0, 1) sample source
        """
        self.embedder = embedder
        self.self_concept = self_concept
        self.config = config or GateConfig()
        self.timeout = timeout
        self.rng = rng

    def probability(self, relevance: float, is_mention: bool = False) -> float:
        """Reply probability for a relevance value."""
        cfg = self.config
        exponent = cfg.shyness + cfg.relevance_weight * relevance
        if cfg.policy == GatePolicy.MENTION_BONUS and is_mention:
            exponent += cfg.mention_bonus
        return sigmoid(exponent)

    async def relevance(self, content: str) -> float:
        """Cosine between a message and the self-concept.

        Raises:
            OracleError: If the embedding call fails or times out
        """
        self_vector = self.self_concept.vector
        if self_vector is None:
            return 0.0

        embedding = await bounded(
            self.embedder.embed(content, EmbeddingTaskType.RETRIEVAL_QUERY),
            self.timeout,
            "gate embedding",
        )
        # The running average of unit vectors is shorter than unit length
        return cosine_similarity(l2_normalize(embedding), l2_normalize(self_vector))

    async def decide(self, event: ChatEvent) -> bool:
        """Decide whether to reply to an event. Fails closed on oracle errors."""
        if event.is_mention and self.config.policy == GatePolicy.HARD_BYPASS:
            logger.debug(f"Gate bypass for mention {event.id}")
            return True

        if not self.self_concept.has_concept and not (
            event.is_mention and self.config.policy == GatePolicy.MENTION_BONUS
        ):
            logger.debug(f"Gate closed for {event.id}: no self-concept yet")
            return False

        try:
            rho = await self.relevance(event.content)
        except (OracleError, ValueError) as e:
            logger.warning(f"Gate failing closed for {event.id}: {e}")
            return False

        p = self.probability(rho, event.is_mention)
        sample = self.rng()
        decision = sample < p
        logger.debug(f"Gate {event.id}: rho={rho:.3f} p={p:.3f} sample={sample:.3f} -> {decision}")
        return decision
