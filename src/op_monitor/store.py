"""Bounded in-memory event store.

Events are appended in arrival order and evicted oldest-first once the
configured capacity is exceeded. There is no per-source index; queries are
linear scans over at most ``capacity`` events.
"""

import logging
from collections import deque
from collections.abc import Iterator
from datetime import datetime

from op_monitor.constants import DEFAULT_MAX_EVENTS
from op_monitor.exceptions import ValidationError
from op_monitor.models import Event

logger = logging.getLogger(__name__)


class EventStore:
    """Append-only event sequence with trim-on-overflow."""

    def __init__(self, capacity: int = DEFAULT_MAX_EVENTS):
        if capacity < 1:
            raise ValidationError(
                "Event store capacity must be at least 1",
                field="capacity",
                value=capacity,
                expected=">= 1",
            )
        self._capacity = capacity
        self._events: deque[Event] = deque()
        self._evicted = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def evicted_count(self) -> int:
        """Total number of events dropped by capacity trimming."""
        return self._evicted

    def record(self, event: Event) -> Event:
        """Append an event, then drop the oldest events beyond capacity."""
        self._events.append(event)
        while len(self._events) > self._capacity:
            dropped = self._events.popleft()
            self._evicted += 1
            logger.debug(f"Evicted event {dropped.id} (capacity {self._capacity})")
        return event

    def recent(self, n: int) -> list[Event]:
        """Return the last ``n`` events in insertion order."""
        if n <= 0:
            return []
        if n >= len(self._events):
            return list(self._events)
        return list(self._events)[-n:]

    def since(self, instant: datetime) -> list[Event]:
        """Return events with ``timestamp >= instant`` in insertion order."""
        return [e for e in self._events if e.timestamp >= instant]

    def last(self) -> Event | None:
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events))
