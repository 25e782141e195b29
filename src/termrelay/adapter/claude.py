"""Claude Code launch protocol."""

from __future__ import annotations

import logging

from termrelay.adapter.base import LaunchProtocol

logger = logging.getLogger(__name__)

# Cursor position report; answers the TUI's startup terminal-size query
CURSOR_REPORT = b"\x1b[9999;1R"


class ClaudeLaunchProtocol(LaunchProtocol):
    name = "claude"

    def build_args(self, cwd: str) -> list[str]:
        args: list[str] = []
        if self.settings.skip_permissions:
            # Pre-authorize the session directory so the trust dialog is skipped
            args += ["--dangerously-skip-permissions", "--add-dir", cwd]
            logger.info("Claude session in %s will skip permission checks", cwd)
        args += self.settings.extra_args
        return args

    def init_writes(self) -> list[bytes]:
        return [CURSOR_REPORT]
