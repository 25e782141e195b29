"""Wire protocol: decouples sessions from delivery.

Sessions and the manager publish events; chat adapters, the console and
any other consumer subscribe and render them. Delivery is fan-out, never
blocks the publisher, and has no replay: a subscriber only sees events sent
after it subscribed.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from termrelay.models import OutputUnit

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    SESSION_CREATED = "session_created"
    SESSION_CLOSED = "session_closed"
    SESSION_SWITCHED = "session_switched"
    OUTPUT_RECEIVED = "output_received"
    CONFIRM_REQUIRED = "confirm_required"
    CONFIRM_RESPONSE = "confirm_response"
    ERROR = "error"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def session(self) -> str | None:
        return self.data.get("session")


@dataclass
class _Subscriber:
    queue: asyncio.Queue[WireEvent | None]
    types: frozenset[EventType] | None


class Wire:
    """Async message bus: sessions -> subscribers.

    Multi-producer, multi-consumer broadcast. Each subscriber gets its own
    queue. A bounded queue that is full drops its oldest event so a slow
    consumer can never stall a session.
    """

    def __init__(self) -> None:
        self._subscribers: list[_Subscriber] = []
        self._closed: bool = False

    def send(self, event: WireEvent) -> None:
        """Send an event to all matching subscribers.

        Silently drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        logger.debug("Event: %s %s", event.type.value, event.session or "")
        for sub in self._subscribers:
            if sub.types is not None and event.type not in sub.types:
                continue
            _put_dropping_oldest(sub.queue, event)

    def send_session_created(self, name: str, work_dir: str, tool: str = "") -> None:
        self.send(
            WireEvent(
                type=EventType.SESSION_CREATED,
                data={"session": name, "work_dir": work_dir, "tool": tool},
            )
        )

    def send_session_closed(self, name: str) -> None:
        self.send(WireEvent(type=EventType.SESSION_CLOSED, data={"session": name}))

    def send_session_switched(
        self, name: str, channel_id: str, reason: str = "switch"
    ) -> None:
        self.send(
            WireEvent(
                type=EventType.SESSION_SWITCHED,
                data={"session": name, "channel_id": channel_id, "reason": reason},
            )
        )

    def send_output(self, name: str, unit: OutputUnit) -> None:
        self.send(
            WireEvent(
                type=EventType.OUTPUT_RECEIVED, data={"session": name, "unit": unit}
            )
        )

    def send_confirm_required(self, name: str, unit: OutputUnit) -> None:
        self.send(
            WireEvent(
                type=EventType.CONFIRM_REQUIRED,
                data={
                    "session": name,
                    "unit": unit,
                    "confirm_id": unit.confirm_id,
                    "options": list(unit.options),
                },
            )
        )

    def send_confirm_response(self, name: str, confirm_id: str, response: str) -> None:
        self.send(
            WireEvent(
                type=EventType.CONFIRM_RESPONSE,
                data={"session": name, "confirm_id": confirm_id, "response": response},
            )
        )

    def send_error(self, name: str, unit: OutputUnit) -> None:
        self.send(
            WireEvent(
                type=EventType.ERROR,
                data={"session": name, "unit": unit, "error": unit.content},
            )
        )

    def subscribe(
        self, *types: EventType, maxsize: int = 0
    ) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from.

        Args:
            types: Only deliver these event types. No types means all.
            maxsize: Bound the queue; 0 means unbounded.
        """
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(_Subscriber(q, frozenset(types) if types else None))
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """Unsubscribe from events."""
        self._subscribers = [s for s in self._subscribers if s.queue is not q]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        if self._closed:
            return
        self._closed = True
        for sub in self._subscribers:
            _put_dropping_oldest(sub.queue, None)


def _put_dropping_oldest(q: asyncio.Queue, item: WireEvent | None) -> None:
    try:
        q.put_nowait(item)
    except asyncio.QueueFull:
        q.get_nowait()
        q.put_nowait(item)
