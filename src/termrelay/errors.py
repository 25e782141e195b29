"""Error taxonomy for session orchestration.

Precondition failures (create / restart / switch) are raised synchronously
to the caller. Failures after a session is running are never raised across
the async boundary: they show up as a status change, a buffered error unit
and an ``ERROR`` event on the wire.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all termrelay errors."""


class StartupFailure(RelayError):
    """The backing process exited before the warm-up period elapsed."""

    def __init__(self, name: str, exit_code: int | None, reason: str = "") -> None:
        msg = f"Session '{name}' exited during startup with code {exit_code}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.name = name
        self.exit_code = exit_code
        self.reason = reason


class SessionExists(RelayError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Session '{name}' already exists")
        self.name = name


class SessionNotFound(RelayError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Session '{name}' not found")
        self.name = name


class NotBound(SessionNotFound):
    """The session exists but is not bound to the given channel."""

    def __init__(self, name: str, channel_id: str) -> None:
        RelayError.__init__(
            self, f"Session '{name}' is not bound to channel {channel_id}"
        )
        self.name = name
        self.channel_id = channel_id


class CapacityExceeded(RelayError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Maximum sessions ({limit}) reached")
        self.limit = limit


class NotStarted(RelayError):
    """An I/O operation was attempted on a session with no live process."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Session '{name}' has no running process")
        self.name = name


class ConfirmNotPending(RelayError):
    """A confirm response was sent while nothing was pending.

    Sessions log this condition instead of raising it.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Session '{name}' has no pending confirmation")
        self.name = name


class RestartRejected(RelayError):
    def __init__(self, name: str, status: str) -> None:
        super().__init__(
            f"Session '{name}' is not in error state (status={status})"
        )
        self.name = name
        self.status = status


class UnknownTool(RelayError):
    def __init__(self, kind: str, available: list[str] | None = None) -> None:
        msg = f"Unknown tool kind '{kind}'"
        if available:
            msg += f". Available: {', '.join(available)}"
        super().__init__(msg)
        self.kind = kind
