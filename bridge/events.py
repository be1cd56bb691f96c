from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from shared.frames import InboundFrame
from shared.log import get_logger

logger = get_logger(__name__)

DEFAULT_CAPACITY = 100


@dataclass
class BufferedEvent:
    timestamp: int                       # arrival time, unix ms
    message_type: str
    source: Optional[str]
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_frame(cls, frame: InboundFrame, timestamp: Optional[int] = None) -> 'BufferedEvent':
        return cls(
            timestamp=int(time.time() * 1000) if timestamp is None else timestamp,
            message_type=frame.message_type,
            source=frame.source or frame.destination,
            attributes=frame.attributes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "messageType": self.message_type,
            "source": self.source,
            "attributes": self.attributes,
        }


class EventBuffer:
    """
    Bounded FIFO of unsolicited inbound frames.

    Once the capacity is exceeded the oldest events are evicted first.
    No filtering or deduplication happens here; callers filter the
    snapshots returned by drain() and peek().
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._events: Deque[BufferedEvent] = deque()
        self._evicted = 0

    def append(self, event: BufferedEvent) -> None:
        self._events.append(event)
        while len(self._events) > self.capacity:
            dropped = self._events.popleft()
            self._evicted += 1
            logger.debug("Evicted oldest event", extra={"msg_type": dropped.message_type})

    def drain(self) -> List[BufferedEvent]:
        """Return all buffered events in arrival order and empty the buffer"""
        events = list(self._events)
        self._events.clear()
        return events

    def peek(self) -> List[BufferedEvent]:
        """Return a snapshot of buffered events without clearing"""
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def stats(self) -> Dict[str, int]:
        """Return buffer statistics."""
        return {
            "buffered_events": len(self._events),
            "capacity": self.capacity,
            "evicted": self._evicted,
        }
