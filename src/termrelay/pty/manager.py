"""Session Manager: registry of sessions and channel routing."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

from termrelay.adapter.registry import AdapterRegistry, default_registry
from termrelay.bus.wire import Wire
from termrelay.config import RelayConfig
from termrelay.errors import (
    CapacityExceeded,
    NotBound,
    RestartRejected,
    SessionExists,
    SessionNotFound,
)
from termrelay.models import SessionInfo, SessionStatus
from termrelay.output.filter import OutputFilter
from termrelay.pty.process import Spawner, spawn_pty
from termrelay.pty.session import Session

logger = logging.getLogger(__name__)


@dataclass
class _NameLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SessionManager:
    """Manages the lifecycle of sessions and their channel bindings.

    - Session names are unique; the session count is capped
    - A channel may be bound to many sessions, with at most one active
    - Sessions are registered and bound *before* their process starts, so
      output produced during warm-up can already be routed
    - Operations on the same session name are serialized; different
      sessions never wait on each other
    """

    def __init__(
        self,
        config: RelayConfig,
        wire: Wire,
        adapters: AdapterRegistry | None = None,
        spawner: Spawner = spawn_pty,
    ) -> None:
        self._config = config
        self._wire = wire
        self._adapters = adapters or default_registry()
        self._spawner = spawner
        self._sessions: dict[str, Session] = {}
        # Insertion-ordered: the first remaining session is promoted on close
        self._channel_sessions: dict[str, dict[str, None]] = {}
        self._channel_active: dict[str, str] = {}
        self._locks: dict[str, _NameLock] = {}

    def update_config(self, config: RelayConfig) -> None:
        """Apply new settings to sessions created from now on."""
        self._config = config

    @asynccontextmanager
    async def _locked(self, name: str) -> AsyncIterator[None]:
        """Serialize operations on one session name.

        The lock entry lives only while someone holds or waits for it.
        """
        entry = self._locks.get(name)
        if entry is None:
            entry = self._locks[name] = _NameLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[name]

    def _require(self, name: str) -> Session:
        session = self._sessions.get(name)
        if session is None:
            raise SessionNotFound(name)
        return session

    # ------------------------------------------------------------------
    # Create / restart / close
    # ------------------------------------------------------------------

    async def create_session(
        self,
        name: str,
        work_dir: str,
        channel_id: str,
        tool: str | None = None,
    ) -> Session:
        """Create, bind and start a session.

        The new session becomes the channel's active session.

        Raises:
            SessionExists: ``name`` is taken.
            CapacityExceeded: ``max_sessions`` sessions already exist.
            UnknownTool: No launch protocol for ``tool``.
            StartupFailure: The process died during warm-up. The session
                stays registered in ERROR status and can be restarted.
        """
        async with self._locked(name):
            if name in self._sessions:
                raise SessionExists(name)
            limit = self._config.session.max_sessions
            if len(self._sessions) >= limit:
                raise CapacityExceeded(limit)

            kind = tool or self._config.cli.default
            protocol = self._adapters.create(
                kind, self._config.cli.tool(kind), self._config.cli.env
            )
            work_dir = os.path.abspath(os.path.expanduser(work_dir))
            launch = protocol.build(
                work_dir, self._config.session.cols, self._config.session.rows
            )
            session = Session(
                name=name,
                work_dir=work_dir,
                launch=launch,
                wire=self._wire,
                settings=self._config.session,
                output_filter=OutputFilter(self._config.filter),
                spawner=self._spawner,
            )

            logger.info("Creating session %s (%s) for channel %s", name, kind, channel_id)
            self._sessions[name] = session
            self._channel_sessions.setdefault(channel_id, {})[name] = None
            self._channel_active[channel_id] = name

            await session.start()
            return session

    async def restart_session(self, name: str) -> Session:
        """Re-run the launch protocol of a crashed session.

        Raises:
            SessionNotFound: No such session.
            RestartRejected: The session is not in ERROR status.
        """
        async with self._locked(name):
            session = self._require(name)
            if session.status != SessionStatus.ERROR:
                raise RestartRejected(name, session.status.value)
            logger.info("Restarting session %s", name)
            await session.start()
            return session

    async def close_session(self, name: str) -> None:
        """Close a session and unbind it from every channel.

        A channel whose active session this was gets its first remaining
        bound session promoted, or no active session if none remain.
        """
        async with self._locked(name):
            session = self._require(name)
            logger.info("Closing session %s", name)
            try:
                await session.close()
            finally:
                del self._sessions[name]
                self._unbind_everywhere(name)

    def _unbind_everywhere(self, name: str) -> None:
        for channel_id in list(self._channel_sessions):
            bound = self._channel_sessions[channel_id]
            bound.pop(name, None)
            if self._channel_active.get(channel_id) == name:
                if bound:
                    promoted = next(iter(bound))
                    self._channel_active[channel_id] = promoted
                    logger.info(
                        "Channel %s now uses session %s", channel_id, promoted
                    )
                    self._wire.send_session_switched(promoted, channel_id, "promoted")
                else:
                    del self._channel_active[channel_id]
            if not bound:
                del self._channel_sessions[channel_id]

    async def close_channel_sessions(self, channel_id: str) -> None:
        """Close every session bound to a channel."""
        for name in list(self._channel_sessions.get(channel_id, {})):
            await self.close_session(name)

    async def close_all(self) -> None:
        """Close every session in parallel. Failures are logged, not raised."""
        logger.info("Closing all sessions")
        names = list(self._sessions)
        results = await asyncio.gather(
            *(self.close_session(name) for name in names), return_exceptions=True
        )
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error("Failed to close session %s: %s", name, result)
        self._sessions.clear()
        self._channel_sessions.clear()
        self._channel_active.clear()

    # ------------------------------------------------------------------
    # Channel routing
    # ------------------------------------------------------------------

    def get_active_session(self, channel_id: str) -> Session | None:
        name = self._channel_active.get(channel_id)
        if name is None:
            return None
        return self._sessions.get(name)

    def set_active_session(self, channel_id: str, name: str) -> None:
        """Switch a channel's active session.

        Raises:
            SessionNotFound: No such session.
            NotBound: The session is not bound to ``channel_id``.
        """
        self._require(name)
        if name not in self._channel_sessions.get(channel_id, {}):
            raise NotBound(name, channel_id)
        self._channel_active[channel_id] = name
        logger.info("Switched to session %s for channel %s", name, channel_id)
        self._wire.send_session_switched(name, channel_id)

    def bind_to_channel(self, name: str, channel_id: str) -> None:
        """Bind an existing session to another channel.

        A channel with no active session adopts it as active.
        """
        self._require(name)
        self._channel_sessions.setdefault(channel_id, {})[name] = None
        self._channel_active.setdefault(channel_id, name)

    def resolve_channel_of(self, name: str) -> str | None:
        """Channel that output from ``name`` should be delivered to.

        Prefers a channel where the session is active, then any bound one.
        """
        for channel_id, active in self._channel_active.items():
            if active == name:
                return channel_id
        for channel_id, bound in self._channel_sessions.items():
            if name in bound:
                return channel_id
        logger.warning("No channel found for session %s", name)
        return None

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_session(self, name: str) -> Session | None:
        return self._sessions.get(name)

    def has_session(self, name: str) -> bool:
        return name in self._sessions

    def list_sessions(self) -> list[SessionInfo]:
        return [s.get_info() for s in self._sessions.values()]

    def list_channel_sessions(self, channel_id: str) -> list[SessionInfo]:
        return [
            self._sessions[name].get_info()
            for name in self._channel_sessions.get(channel_id, {})
            if name in self._sessions
        ]

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)
