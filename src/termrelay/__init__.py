"""termrelay: remote-control interactive coding CLIs through their terminals."""

from termrelay.bus import EventType, Wire, WireEvent
from termrelay.config import RelayConfig
from termrelay.models import (
    OutputKind,
    OutputUnit,
    PendingConfirm,
    SessionInfo,
    SessionStatus,
)
from termrelay.output import classify
from termrelay.pty import OutputBuffer, Session, SessionManager

__version__ = "0.1.0"

__all__ = [
    "classify",
    "EventType",
    "OutputBuffer",
    "OutputKind",
    "OutputUnit",
    "PendingConfirm",
    "RelayConfig",
    "Session",
    "SessionInfo",
    "SessionManager",
    "SessionStatus",
    "Wire",
    "WireEvent",
]
