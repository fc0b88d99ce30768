"""Tests for system prompt assembly."""

import pytest

from episteme.config import DAY_SECONDS
from episteme.memory.prompt import (
    NO_BELIEFS,
    NO_CONVERSATION,
    NO_EPISODES,
    build_prompt,
    format_event,
    format_relative_age,
)
from episteme.memory.types import Belief, Persona
from episteme.memory.working import WorkingMemory

from conftest import NOW

PERSONA = Persona(description="A friendly VC.", communication_style="Short and warm.")


class TestFormatting:
    """Tests for line formatting helpers."""

    def test_format_event(self, make_event):
        event = make_event(content="hi all", author_name="Bob", author_id="99")
        assert format_event(event, "Gary") == "[Bob <@99>] hi all"

    def test_format_own_event(self, make_event):
        event = make_event(content="hello", is_own=True)
        assert format_event(event, "Gary") == "[Gary <@me>] hello"

    @pytest.mark.parametrize(
        "age, expected",
        [
            (5, "just now"),
            (60, "1 minute ago"),
            (150, "2 minutes ago"),
            (7200, "2 hours ago"),
            (DAY_SECONDS, "1 day ago"),
            (10 * DAY_SECONDS, "10 days ago"),
        ],
    )
    def test_relative_age(self, age, expected):
        assert format_relative_age(age) == expected


class TestBuildPrompt:
    """Tests for the assembled prompt."""

    def test_empty_sections_use_placeholders(self):
        prompt = build_prompt([], [], [], None, agent_name="Gary", now=NOW)
        assert prompt.startswith("You are Gary.")
        assert NO_BELIEFS in prompt
        assert NO_EPISODES in prompt
        assert NO_CONVERSATION in prompt

    def test_section_order(self, make_event, make_episode):
        wm = WorkingMemory()
        wm.record(make_event(content="first"))
        wm.record(make_event(content="second"))
        prompt = build_prompt(
            wm,
            [make_episode(summary="We argued about AI.", timestamp=NOW - 3 * 3600)],
            [Belief(statement="I enjoy debates.", confidence=0.8)],
            PERSONA,
            agent_name="Gary",
            now=NOW,
            born_at=NOW - 12 * DAY_SECONDS,
        )

        order = [
            prompt.index("A friendly VC."),
            prompt.index("Communication style: Short and warm."),
            prompt.index("You are 12 days old."),
            prompt.index("I enjoy debates. (confidence 80%)"),
            prompt.index("(3 hours ago) We argued about AI."),
            prompt.index("] first"),
            prompt.index("] second"),
        ]
        assert order == sorted(order)

    def test_top_five_beliefs_by_confidence(self):
        beliefs = [Belief(statement=f"belief {i}", confidence=i / 10) for i in range(8)]
        prompt = build_prompt([], [], beliefs, PERSONA, agent_name="Gary", now=NOW)

        for i in range(3, 8):
            assert f"belief {i}" in prompt
        for i in range(3):
            assert f"belief {i}" not in prompt
        assert prompt.index("belief 7") < prompt.index("belief 3")

    def test_age_omitted_without_birth(self):
        prompt = build_prompt([], [], [], PERSONA, agent_name="Gary", now=NOW)
        assert "days old" not in prompt

    def test_singular_day(self):
        prompt = build_prompt([], [], [], PERSONA, agent_name="Gary", now=NOW, born_at=NOW - DAY_SECONDS)
        assert "You are 1 day old." in prompt
