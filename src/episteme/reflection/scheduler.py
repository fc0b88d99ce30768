"""Recurring reflection schedule.

The host owns a ReflectionScheduler that waits on a Trigger and then calls
the same run_reflection_cycle() entry point a manual or test call would.
Scheduling is kept apart from the consolidation logic so either can be
swapped or tested on its own.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

logger = logging.getLogger(__name__)


class Trigger(Protocol):
    """Something that resolves when the next cycle is due."""

    async def wait(self) -> None:
        ...


class IntervalTrigger:
    """Fires every `seconds` seconds."""

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise ValueError("Reflection interval must be positive")
        self.seconds = seconds

    async def wait(self) -> None:
        await asyncio.sleep(self.seconds)


class ReflectionScheduler:
    """Background loop: wait for the trigger, run one cycle, repeat.

    A failing cycle is logged and the loop carries on. Cycles run in their
    own task so stop() can either let the in-flight cycle finish or cancel it.
    """

    def __init__(self, trigger: Trigger, run: Callable[[], Awaitable[Any]]):
        """Initialize the scheduler.

        Args:
            trigger: When to run
            run: The cycle entry point, usually run_reflection_cycle
        """
        self.trigger = trigger
        self.run = run
        self.cycles_run = 0
        self._task: asyncio.Task | None = None
        self._cycle: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        """Whether the loop is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop. No-op if already started."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="episteme-reflection")
        logger.info("Reflection scheduler started")

    async def stop(self, graceful: bool = True) -> None:
        """Stop the loop.

        Args:
            graceful: Let an in-flight cycle finish instead of cancelling it
        """
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        cycle, self._cycle = self._cycle, None
        if cycle is not None and not cycle.done():
            if graceful:
                logger.info("Waiting for in-flight reflection cycle")
            else:
                cycle.cancel()
            await asyncio.gather(cycle, return_exceptions=True)

        logger.info("Reflection scheduler stopped")

    async def _loop(self) -> None:
        while True:
            await self.trigger.wait()
            self._cycle = asyncio.create_task(self._run_cycle())
            # Shielded so cancelling the loop leaves the cycle to stop()
            await asyncio.shield(self._cycle)
            self._cycle = None

    async def _run_cycle(self) -> None:
        try:
            result = await self.run()
        except asyncio.CancelledError:
            logger.warning("Reflection cycle cancelled")
            raise
        except Exception as e:
            logger.error(f"Reflection cycle failed: {e}", exc_info=True)
            return
        finally:
            self.cycles_run += 1
        logger.debug(f"Reflection cycle finished: {result}")
