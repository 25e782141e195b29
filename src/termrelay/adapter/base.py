"""Launch protocols: how each CLI tool is started inside a PTY."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

from termrelay.config import ToolSettings

# What the terminal's Enter key sends
ENTER = "\r"


@dataclass
class LaunchSpec:
    """Everything needed to (re)spawn a tool's terminal process."""

    tool: str
    executable: str
    args: list[str] = field(default_factory=list)
    cwd: str = "."
    env: dict[str, str] = field(default_factory=dict)
    cols: int = 120
    rows: int = 40
    init_writes: list[bytes] = field(default_factory=list)
    terminator: str = ENTER

    @property
    def command(self) -> list[str]:
        return [self.executable, *self.args]


class LaunchProtocol(ABC):
    """Base class for tool launch protocols.

    Subclasses declare the tool kind in ``name`` and build the tool's
    argument list. Environment and terminal setup are shared.
    """

    name: ClassVar[str] = ""

    def __init__(
        self, settings: ToolSettings, global_env: dict[str, str] | None = None
    ) -> None:
        self.settings = settings
        self.global_env = global_env or {}

    @abstractmethod
    def build_args(self, cwd: str) -> list[str]:
        """Command-line arguments for a session rooted at ``cwd``."""

    def init_writes(self) -> list[bytes]:
        """Bytes written to the terminal right after spawn."""
        return []

    def build_env(self) -> dict[str, str]:
        return {
            **self.global_env,
            **self.settings.env,
            "LANG": "en_US.UTF-8",
            "TERM": "xterm-256color",
        }

    def build(self, cwd: str, cols: int = 120, rows: int = 40) -> LaunchSpec:
        return LaunchSpec(
            tool=self.name,
            executable=self.settings.executable or self.name,
            args=self.build_args(cwd),
            cwd=cwd,
            env=self.build_env(),
            cols=cols,
            rows=rows,
            init_writes=self.init_writes(),
        )
