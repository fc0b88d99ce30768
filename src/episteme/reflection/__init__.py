"""Reflection: periodic consolidation of episodes into beliefs and persona.

Usage:
    from episteme.reflection import ReflectionEngine, ReflectionScheduler, IntervalTrigger

    engine = ReflectionEngine(generator, store)
    result = await engine.run_reflection_cycle()

    scheduler = ReflectionScheduler(IntervalTrigger(86400), engine.run_reflection_cycle)
    scheduler.start()
"""

from episteme.reflection.engine import ReflectionEngine, ReflectionResult
from episteme.reflection.scheduler import IntervalTrigger, ReflectionScheduler, Trigger

__all__ = [
    "IntervalTrigger",
    "ReflectionEngine",
    "ReflectionResult",
    "ReflectionScheduler",
    "Trigger",
]
