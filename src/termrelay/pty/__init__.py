"""PTY process management: supervised terminal sessions for CLI tools.

Every tool runs in its own pseudo-terminal and process group, with a
size-bounded output buffer, a classified event stream and automatic
cleanup.
"""

from termrelay.pty.buffer import OutputBuffer
from termrelay.pty.manager import SessionManager
from termrelay.pty.process import PtyProcess, spawn_pty
from termrelay.pty.session import Session

__all__ = [
    "OutputBuffer",
    "PtyProcess",
    "Session",
    "SessionManager",
    "spawn_pty",
]
