"""Reflection and consolidation engine.

A reflection cycle:
1. Checks there are enough new episodes since the last cycle
2. Asks the generation oracle for first-person insights over recent episodes
3. Matches each insight to the episode it cites and folds it into a belief
4. Resynthesizes the persona from all beliefs, strongest first

Each step commits on its own. An oracle failure aborts only the step it
happens in; a failed persona update never rolls back the beliefs written
before it.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from episteme.ai.oracle import GenerationOracle, bounded
from episteme.ai.prompts import (
    INSIGHT_SCHEMA,
    INSIGHT_SYSTEM,
    INSIGHT_USER,
    PERSONA_SCHEMA,
    PERSONA_SYSTEM,
    PERSONA_USER,
)
from episteme.ai.schemas import InsightProposal, parse_insight_proposal, parse_persona_update
from episteme.config import ReflectionConfig
from episteme.db.store import LAST_REFLECTION_KEY, MemoryStore
from episteme.errors import OracleError, ValidationError
from episteme.memory.types import Belief, Episode, Persona

logger = logging.getLogger(__name__)


@dataclass
class ReflectionResult:
    """Outcome of one reflection cycle."""

    skipped: bool = False
    reason: str = ""
    beliefs_created: int = 0
    beliefs_updated: int = 0
    insights_dropped: int = 0
    persona_updated: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "skipped": self.skipped,
            "reason": self.reason,
            "beliefs_created": self.beliefs_created,
            "beliefs_updated": self.beliefs_updated,
            "insights_dropped": self.insights_dropped,
            "persona_updated": self.persona_updated,
        }


def normalize_text(text: str) -> str:
    """Casefold and collapse whitespace for loose evidence matching."""
    return " ".join(text.split()).casefold()


class ReflectionEngine:
    """Distills recurring patterns across episodes into beliefs and persona.

    Cycles never overlap: a call made while another cycle is running
    returns a skipped result immediately.
    """

    def __init__(
        self,
        generator: GenerationOracle,
        store: MemoryStore,
        config: ReflectionConfig | None = None,
        agent_name: str = "Gary",
        default_persona: Persona | None = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the reflection engine.

        Args:
            generator: Generation oracle for insights and persona synthesis
            store: Persistent store
            config: Episode window, minimum new episodes and insight cap
            agent_name: Name used in first-person prompts
            default_persona: Persona assumed when none is stored yet
            timeout: Budget for each oracle call in seconds
            clock: Source of unix time
        """
        self.generator = generator
        self.store = store
        self.config = config or ReflectionConfig()
        self.agent_name = agent_name
        self.default_persona = default_persona or Persona(description="", communication_style="")
        self.timeout = timeout
        self.clock = clock
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        """Whether a cycle is in progress."""
        return self._lock.locked()

    async def run_reflection_cycle(self) -> ReflectionResult:
        """Run one reflection cycle.

        Returns:
            ReflectionResult describing what changed

        Raises:
            StoreError: If reading episodes/beliefs, saving a belief or saving
                the persona fails. A failed belief save leaves the last
                reflection checkpoint unchanged so the episodes are mined again.
        """
        if self._lock.locked():
            logger.info("Reflection already running, skipping")
            return ReflectionResult(skipped=True, reason="already running")

        async with self._lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> ReflectionResult:
        started_at = self.clock()

        last = await self.store.get_meta(LAST_REFLECTION_KEY)
        since = float(last) if last else 0.0
        new_episodes = await self.store.count_episodes_since(since)
        if new_episodes < self.config.min_new_episodes:
            reason = f"{new_episodes} new episodes, need {self.config.min_new_episodes}"
            logger.info(f"Reflection skipped: {reason}")
            return ReflectionResult(skipped=True, reason=reason)

        episodes = await self.store.recent_episodes(self.config.recent_episodes)
        beliefs = await self.store.all_beliefs()
        result = ReflectionResult()

        # Step 1: insights -> beliefs
        proposal = await self._mine_insights(episodes, beliefs)
        if proposal is not None:
            beliefs = await self._apply_insights(proposal, episodes, beliefs, result)
            await self.store.set_meta(LAST_REFLECTION_KEY, str(started_at))

        # Step 2: persona, independent of step 1 succeeding
        result.persona_updated = await self._update_persona(beliefs)

        logger.info(
            f"Reflection complete: {result.beliefs_created} created, "
            f"{result.beliefs_updated} updated, {result.insights_dropped} dropped, "
            f"persona_updated={result.persona_updated}"
        )
        return result

    async def _mine_insights(
        self,
        episodes: list[Episode],
        beliefs: list[Belief],
    ) -> InsightProposal | None:
        """Ask the oracle for insights. Returns None on oracle failure."""
        episode_lines = "\n".join(f"- {e.summary}" for e in episodes)
        belief_lines = "\n".join(f"- {b.statement}" for b in beliefs) or "- (none yet)"
        messages = [
            {"role": "system", "content": INSIGHT_SYSTEM.format(name=self.agent_name)},
            {
                "role": "user",
                "content": INSIGHT_USER.format(
                    episodes=episode_lines,
                    beliefs=belief_lines,
                    max_insights=self.config.max_insights,
                ),
            },
        ]

        try:
            payload = await bounded(
                self.generator.generate(messages, schema=INSIGHT_SCHEMA),
                self.timeout,
                "insight mining",
            )
            return parse_insight_proposal(payload, self.config.max_insights)
        except (OracleError, ValidationError) as e:
            logger.warning(f"Insight mining failed, skipping belief update: {e}")
            return None

    def _match_evidence(self, evidence: str, episodes: list[Episode]) -> Episode | None:
        """Find the episode an insight cites: exact summary first, then loose."""
        for episode in episodes:
            if episode.summary == evidence:
                return episode

        wanted = normalize_text(evidence)
        for episode in episodes:
            if normalize_text(episode.summary) == wanted:
                return episode
        return None

    async def _apply_insights(
        self,
        proposal: InsightProposal,
        episodes: list[Episode],
        beliefs: list[Belief],
        result: ReflectionResult,
    ) -> list[Belief]:
        """Fold insights into beliefs, saving each one individually.

        Returns:
            The belief set after this step
        """
        by_statement = {b.statement: b for b in beliefs}
        now = self.clock()

        for insight in proposal.insights:
            episode = self._match_evidence(insight.supporting_evidence, episodes)
            if episode is None:
                logger.warning(f"Dropping insight with unmatched evidence: {insight.statement!r}")
                result.insights_dropped += 1
                continue

            existing = by_statement.get(insight.statement)
            if existing is not None:
                belief = dataclasses.replace(
                    existing, supporting_episodes=list(existing.supporting_episodes)
                )
                belief.reinforce(episode.importance, episode.id, now=now)
            else:
                belief = Belief(
                    statement=insight.statement,
                    confidence=episode.importance,
                    supporting_episodes=[episode.id],
                    created_at=now,
                    updated_at=now,
                )

            # StoreError propagates and leaves the checkpoint where it was
            await self.store.save_belief(belief)

            by_statement[belief.statement] = belief
            if existing is not None:
                result.beliefs_updated += 1
                logger.debug(
                    f"Belief reinforced {existing.confidence:.2f} -> {belief.confidence:.2f}: "
                    f"{belief.statement!r}"
                )
            else:
                result.beliefs_created += 1
                logger.debug(f"Belief created at {belief.confidence:.2f}: {belief.statement!r}")

        return sorted(by_statement.values(), key=lambda b: b.confidence, reverse=True)

    async def _update_persona(self, beliefs: list[Belief]) -> bool:
        """Resynthesize and overwrite the persona. Returns True if it changed."""
        if not beliefs:
            logger.info("No beliefs yet, keeping persona")
            return False

        current = await self.store.get_persona() or self.default_persona
        ranked = sorted(beliefs, key=lambda b: b.confidence, reverse=True)
        belief_lines = "\n".join(f"- {b.statement} ({b.confidence:.0%})" for b in ranked)
        messages = [
            {"role": "system", "content": PERSONA_SYSTEM.format(name=self.agent_name)},
            {
                "role": "user",
                "content": PERSONA_USER.format(
                    description=current.description,
                    communication_style=current.communication_style,
                    beliefs=belief_lines,
                ),
            },
        ]

        try:
            payload = await bounded(
                self.generator.generate(messages, schema=PERSONA_SCHEMA),
                self.timeout,
                "persona synthesis",
            )
            update = parse_persona_update(payload)
        except (OracleError, ValidationError) as e:
            logger.warning(f"Persona synthesis failed, keeping current persona: {e}")
            return False

        await self.store.save_persona(
            Persona(description=update.description, communication_style=update.communication_style)
        )
        logger.info(f"Persona updated: {update.description!r}")
        return True
