"""OpenCode launch protocol."""

from __future__ import annotations

from termrelay.adapter.base import LaunchProtocol


class OpenCodeLaunchProtocol(LaunchProtocol):
    # No permission-bypass flag exists; skip_permissions is ignored
    name = "opencode"

    def build_args(self, cwd: str) -> list[str]:
        return ["--dir", cwd, *self.settings.extra_args]
