"""System prompt assembly.

Stateless: every call builds the full prompt from the latest memory state.
Sections, in order:
1. Identity and persona
2. Age in days
3. Top beliefs by confidence
4. Recalled episodes with their relative age
5. Recent conversation from working memory
"""

from __future__ import annotations

import time
from typing import Iterable

from episteme.config import DAY_SECONDS
from episteme.memory.types import Belief, ChatEvent, Episode, Persona
from episteme.memory.working import WorkingMemory

MAX_BELIEFS = 5

NO_BELIEFS = "- You have not formed any strong beliefs yet."
NO_EPISODES = "- Nothing in particular comes to mind."
NO_CONVERSATION = "- The conversation is quiet."


def format_event(event: ChatEvent, agent_name: str) -> str:
    """Render one chat line as `[Name <@id>] content`.

    The agent's own messages render with the <@me> marker.
    """
    if event.is_own:
        return f"[{agent_name} <@me>] {event.content}"
    return f"[{event.author_name} <@{event.author_id}>] {event.content}"


def format_relative_age(age_seconds: float) -> str:
    """Human-readable age such as '3 hours ago'."""
    age = max(0.0, age_seconds)
    if age < 60:
        return "just now"
    if age < 3600:
        minutes = int(age // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if age < DAY_SECONDS:
        hours = int(age // 3600)
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = int(age // DAY_SECONDS)
    return f"{days} day{'s' if days != 1 else ''} ago"


def build_prompt(
    working_memory: WorkingMemory | Iterable[ChatEvent],
    episodes: list[Episode],
    beliefs: list[Belief],
    persona: Persona | None,
    *,
    agent_name: str,
    now: float | None = None,
    born_at: float | None = None,
    max_beliefs: int = MAX_BELIEFS,
) -> str:
    """Build the system prompt for a response.

    Args:
        working_memory: WorkingMemory or its events, oldest first
        episodes: Recalled episodes, most relevant first
        beliefs: Beliefs in any order; the strongest max_beliefs are shown
        persona: Current persona (None renders a bare identity line)
        agent_name: Display name of the agent
        now: Reference unix time (default: now)
        born_at: When the agent first came online; enables the age line
        max_beliefs: Belief cap

    Returns:
        Prompt text
    """
    if now is None:
        now = time.time()

    if isinstance(working_memory, WorkingMemory):
        events = working_memory.events()
    else:
        events = list(working_memory)

    lines = [f"You are {agent_name}."]
    if persona is not None:
        if persona.description:
            lines.append(persona.description)
        if persona.communication_style:
            lines.append(f"Communication style: {persona.communication_style}")

    if born_at is not None:
        age_days = int(max(0.0, now - born_at) // DAY_SECONDS)
        lines.append(f"You are {age_days} day{'s' if age_days != 1 else ''} old.")

    lines.append("")
    lines.append("## What you believe")
    top = sorted(beliefs, key=lambda b: b.confidence, reverse=True)[:max_beliefs]
    if top:
        lines.extend(f"- {b.statement} (confidence {b.confidence:.0%})" for b in top)
    else:
        lines.append(NO_BELIEFS)

    lines.append("")
    lines.append("## What you remember")
    if episodes:
        lines.extend(f"- ({format_relative_age(now - e.timestamp)}) {e.summary}" for e in episodes)
    else:
        lines.append(NO_EPISODES)

    lines.append("")
    lines.append("## Recent conversation")
    if events:
        lines.extend(format_event(e, agent_name) for e in events)
    else:
        lines.append(NO_CONVERSATION)

    return "\n".join(lines)
