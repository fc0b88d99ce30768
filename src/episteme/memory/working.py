"""Working memory for the live conversation.

Working memory is a bounded FIFO of the most recent raw events. It is
always available for prompt assembly and never persisted.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any

from episteme.memory.types import ChatEvent


class WorkingMemory:
    """Bounded recency buffer of chat events.

    Insertion order is recency order. When a new event pushes the length
    past capacity, the oldest event is evicted; there is no scoring.
    """

    def __init__(self, capacity: int = 10):
        """Initialize working memory.

        Args:
            capacity: Maximum number of events retained (k)
        """
        if capacity < 1:
            raise ValueError("Working memory capacity must be at least 1")
        self.capacity = capacity
        self._events: deque[ChatEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(self, event: ChatEvent) -> ChatEvent | None:
        """Append an event, evicting the oldest when over capacity.

        Returns:
            The evicted event, or None
        """
        with self._lock:
            evicted = self._events[0] if len(self._events) == self.capacity else None
            self._events.append(event)
            return evicted

    def events(self) -> list[ChatEvent]:
        """Snapshot of the buffered events in arrival order."""
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        """Drop every buffered event."""
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the buffer state."""
        with self._lock:
            newest = self._events[-1].timestamp if self._events else None
            return {
                "capacity": self.capacity,
                "size": len(self._events),
                "newest_timestamp": newest,
            }
