"""Decoding of structured oracle output into explicit result types.

Loosely-typed JSON from the generation oracle is validated here. Numeric
fields with a sane range are clamped; missing or malformed fields with no
sane default raise ValidationError instead of a raw KeyError/TypeError.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from episteme.errors import ValidationError


@dataclass(frozen=True)
class EpisodeScoring:
    """Summarization result for a batch of events."""

    summary: str
    importance: float
    emotion: float


@dataclass(frozen=True)
class Insight:
    """A proposed first-person belief and the episode summary behind it."""

    statement: str
    supporting_evidence: str


@dataclass(frozen=True)
class InsightProposal:
    """Insight mining result."""

    insights: list[Insight]


@dataclass(frozen=True)
class PersonaUpdate:
    """Persona synthesis result."""

    description: str
    communication_style: str


def _require_object(payload: Any, kind: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError(f"{kind}: expected a JSON object, got {type(payload).__name__}", payload)
    return payload


def _require_text(payload: dict[str, Any], key: str, kind: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{kind}: missing or empty '{key}'", payload)
    return value.strip()


def _number(payload: dict[str, Any], key: str, low: float, high: float, default: float) -> float:
    """Read a number and clamp it; fall back to default when absent or junk."""
    value = payload.get(key)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return max(low, min(high, number))


def parse_episode_scoring(payload: Any) -> EpisodeScoring:
    """Decode {summary, importance, emotion}.

    Raises:
        ValidationError: If the summary is missing
    """
    data = _require_object(payload, "episode scoring")
    return EpisodeScoring(
        summary=_require_text(data, "summary", "episode scoring"),
        importance=_number(data, "importance", 0.0, 1.0, default=0.0),
        emotion=_number(data, "emotion", -1.0, 1.0, default=0.0),
    )


def parse_insight_proposal(payload: Any, max_insights: int = 3) -> InsightProposal:
    """Decode {insights: [{statement, supporting_evidence}]}.

    Malformed individual insights are dropped; at most max_insights are kept.

    Raises:
        ValidationError: If the insights list itself is missing
    """
    data = _require_object(payload, "insight proposal")
    raw = data.get("insights")
    if not isinstance(raw, list):
        raise ValidationError("insight proposal: 'insights' must be a list", payload)

    insights = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        statement = item.get("statement")
        evidence = item.get("supporting_evidence")
        if not isinstance(statement, str) or not statement.strip():
            continue
        if not isinstance(evidence, str) or not evidence.strip():
            continue
        insights.append(Insight(statement=statement.strip(), supporting_evidence=evidence.strip()))

    return InsightProposal(insights=insights[:max_insights])


def parse_persona_update(payload: Any) -> PersonaUpdate:
    """Decode {new_description, new_communication_style}.

    Raises:
        ValidationError: If either field is missing
    """
    data = _require_object(payload, "persona update")
    return PersonaUpdate(
        description=_require_text(data, "new_description", "persona update"),
        communication_style=_require_text(data, "new_communication_style", "persona update"),
    )
