"""Adapter registry: tool kind to launch protocol."""

from __future__ import annotations

import logging
from typing import Callable

from termrelay.adapter.base import LaunchProtocol
from termrelay.adapter.claude import ClaudeLaunchProtocol
from termrelay.adapter.opencode import OpenCodeLaunchProtocol
from termrelay.config import ToolSettings
from termrelay.errors import UnknownTool

logger = logging.getLogger(__name__)

ProtocolFactory = Callable[[ToolSettings, dict[str, str]], LaunchProtocol]


class AdapterRegistry:
    """Registry of launch protocols, keyed by tool kind."""

    def __init__(self) -> None:
        self._factories: dict[str, ProtocolFactory] = {}

    def register(self, name: str, factory: ProtocolFactory) -> None:
        """Register a protocol factory."""
        if name in self._factories:
            logger.warning("Adapter %s already registered, overwriting", name)
        self._factories[name] = factory

    def create(
        self,
        name: str,
        settings: ToolSettings,
        global_env: dict[str, str] | None = None,
    ) -> LaunchProtocol:
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownTool(name, self.names())
        return factory(settings, global_env or {})

    def names(self) -> list[str]:
        """Get all registered tool kinds."""
        return list(self._factories.keys())

    def has(self, name: str) -> bool:
        return name in self._factories


def default_registry() -> AdapterRegistry:
    """Registry with the built-in Claude Code and OpenCode protocols."""
    registry = AdapterRegistry()
    registry.register(ClaudeLaunchProtocol.name, ClaudeLaunchProtocol)
    registry.register(OpenCodeLaunchProtocol.name, OpenCodeLaunchProtocol)
    return registry
