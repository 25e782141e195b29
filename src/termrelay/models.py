"""Core data types: session status, output units, pending confirmations."""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field


class SessionStatus(enum.StrEnum):
    """Lifecycle states of a supervised session."""

    IDLE = "idle"
    PROCESSING = "processing"
    WAITING_CONFIRM = "waiting_confirm"
    ERROR = "error"


class OutputKind(enum.StrEnum):
    NORMAL = "normal"
    CONFIRM = "confirm"
    ERROR = "error"


def new_confirm_id(prefix: str = "confirm") -> str:
    """Fresh id for a detected prompt. Redraws of one prompt get new ids."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class OutputUnit:
    """One classified piece of process output.

    ``confirm_id``, ``options``, ``selected_index`` and ``prompt`` are only
    populated for ``OutputKind.CONFIRM`` units.
    """

    kind: OutputKind
    content: str
    timestamp: float = field(default_factory=time.time)
    confirm_id: str | None = None
    options: tuple[str, ...] = ()
    selected_index: int | None = None
    prompt: str | None = None

    @classmethod
    def normal(cls, content: str) -> OutputUnit:
        return cls(kind=OutputKind.NORMAL, content=content)

    @classmethod
    def error(cls, content: str) -> OutputUnit:
        return cls(kind=OutputKind.ERROR, content=content)

    @classmethod
    def confirm(
        cls,
        content: str,
        options: list[str] | tuple[str, ...],
        confirm_id: str | None = None,
        selected_index: int | None = None,
        prompt: str | None = None,
    ) -> OutputUnit:
        return cls(
            kind=OutputKind.CONFIRM,
            content=content,
            confirm_id=confirm_id or new_confirm_id(),
            options=tuple(options),
            selected_index=selected_index,
            prompt=prompt,
        )

    @property
    def requires_confirm(self) -> bool:
        return self.kind == OutputKind.CONFIRM


@dataclass(frozen=True)
class PendingConfirm:
    """The confirmation a session is currently waiting on."""

    confirm_id: str
    options: tuple[str, ...] = ()

    @classmethod
    def from_unit(cls, unit: OutputUnit) -> PendingConfirm:
        return cls(
            confirm_id=unit.confirm_id or new_confirm_id(),
            options=unit.options,
        )


@dataclass
class SessionInfo:
    """Snapshot of a session for listing and status display."""

    name: str
    work_dir: str
    status: SessionStatus
    created_at: float
    last_active_at: float
    tool: str = ""
