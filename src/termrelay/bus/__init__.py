"""Event bus: in-process publish/subscribe between sessions and consumers."""

from termrelay.bus.wire import EventType, Wire, WireEvent

__all__ = [
    "EventType",
    "Wire",
    "WireEvent",
]
