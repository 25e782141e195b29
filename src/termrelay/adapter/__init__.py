"""CLI tool adapters: per-tool launch protocols."""

from termrelay.adapter.base import ENTER, LaunchProtocol, LaunchSpec
from termrelay.adapter.claude import ClaudeLaunchProtocol
from termrelay.adapter.opencode import OpenCodeLaunchProtocol
from termrelay.adapter.registry import AdapterRegistry, default_registry

__all__ = [
    "AdapterRegistry",
    "ClaudeLaunchProtocol",
    "default_registry",
    "ENTER",
    "LaunchProtocol",
    "LaunchSpec",
    "OpenCodeLaunchProtocol",
]
