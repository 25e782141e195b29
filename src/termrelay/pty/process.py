"""PTY process handle: spawn a tool attached to a pseudo-terminal."""

from __future__ import annotations

import asyncio
import fcntl
import logging
import os
import pty
import select
import signal
import struct
import subprocess
import termios
from typing import Callable, Protocol

from termrelay.adapter.base import LaunchSpec

logger = logging.getLogger(__name__)

READ_CHUNK = 4096
EXIT_POLL_INTERVAL = 0.1
WRITE_WAIT = 0.1

DataCallback = Callable[[bytes], None]
ExitCallback = Callable[[int], None]


class ProcessHandle(Protocol):
    """What a session needs from a spawned terminal process."""

    pid: int

    def write(self, data: bytes | str) -> None: ...

    def resize(self, cols: int, rows: int) -> None: ...

    def kill(self, sig: int = signal.SIGTERM) -> None: ...

    def on_data(self, callback: DataCallback) -> None: ...

    def on_exit(self, callback: ExitCallback) -> None: ...


Spawner = Callable[[LaunchSpec], ProcessHandle]


def exit_code_from_returncode(returncode: int) -> int:
    """Map Popen's negative signal returncodes to the shell's 128+N."""
    if returncode < 0:
        return 128 - returncode
    return returncode


def set_window_size(fd: int, cols: int, rows: int) -> None:
    winsize = struct.pack("HHHH", max(1, rows), max(1, cols), 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


class PtyProcess:
    """A child process on its own pseudo-terminal and process group.

    The master fd is non-blocking and watched with ``loop.add_reader``, so
    no executor thread is held per session. Output goes to ``on_data``
    callbacks as raw bytes; ``on_exit`` callbacks get the exit code once the
    terminal closes and the child is reaped. Both run on the event loop.
    Callbacks registered right after ``spawn()`` returns see all output,
    because the reader only fires once the caller yields to the loop.

    Uses subprocess.Popen (not os.fork) to avoid deadlocks when
    spawned from within an asyncio event loop on macOS.
    """

    def __init__(self, spec: LaunchSpec) -> None:
        self.spec = spec
        self.pid: int = 0
        self._pgid: int = 0
        self._master_fd: int = -1
        self._proc: subprocess.Popen | None = None
        self._reader_task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._eof: asyncio.Future[None] | None = None
        self._reading = False
        self._data_callbacks: list[DataCallback] = []
        self._exit_callbacks: list[ExitCallback] = []
        self._exit_code: int | None = None

    def spawn(self) -> None:
        """Start the process. Must be called from the event loop thread."""
        master_fd, slave_fd = pty.openpty()
        self._master_fd = master_fd
        env = {**os.environ, **self.spec.env}

        try:
            set_window_size(slave_fd, self.spec.cols, self.spec.rows)
            self._proc = subprocess.Popen(
                self.spec.command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,  # Creates new process group
                env=env,
                cwd=self.spec.cwd,
            )
        except OSError:
            os.close(master_fd)
            self._master_fd = -1
            raise
        finally:
            # Parent always closes slave fd
            os.close(slave_fd)

        self.pid = self._proc.pid
        self._pgid = os.getpgid(self.pid)

        self._loop = asyncio.get_running_loop()
        self._eof = self._loop.create_future()
        os.set_blocking(master_fd, False)
        self._loop.add_reader(master_fd, self._on_readable)
        self._reading = True
        self._reader_task = asyncio.create_task(self._read_loop())

        logger.info(
            "PTY spawned: pid=%d cmd=%s cwd=%s",
            self.pid,
            " ".join(self.spec.command),
            self.spec.cwd,
        )

    async def _read_loop(self) -> None:
        """Wait for the terminal to close, then reap the child."""
        try:
            await self._eof
        finally:
            self._stop_reading()
            try:
                os.close(self._master_fd)
            except OSError:
                pass
            self._master_fd = -1

        returncode = await self._wait_for_returncode()
        self._exit_code = exit_code_from_returncode(returncode)
        logger.info("PTY process %d exited (code=%d)", self.pid, self._exit_code)
        for callback in list(self._exit_callbacks):
            try:
                callback(self._exit_code)
            except Exception:
                logger.exception("Error in on_exit callback for pid %d", self.pid)

    def _on_readable(self) -> None:
        try:
            data = os.read(self._master_fd, READ_CHUNK)
        except BlockingIOError:
            return
        except OSError:
            # EIO once the child side of the terminal is gone
            data = b""
        if not data:
            self._stop_reading()
            return
        for callback in list(self._data_callbacks):
            try:
                callback(data)
            except Exception:
                logger.exception("Error in on_data callback for pid %d", self.pid)

    def _stop_reading(self) -> None:
        if self._reading:
            self._loop.remove_reader(self._master_fd)
            self._reading = False
        if not self._eof.done():
            self._eof.set_result(None)

    async def _wait_for_returncode(self) -> int:
        while True:
            returncode = self._proc.poll()
            if returncode is not None:
                return returncode
            await asyncio.sleep(EXIT_POLL_INTERVAL)

    def write(self, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        if self._master_fd < 0:
            raise OSError(f"PTY for pid {self.pid} is closed")
        logger.debug("PTY write %d: %r", self.pid, data[:100])
        view = memoryview(data)
        while view:
            try:
                written = os.write(self._master_fd, view)
            except BlockingIOError:
                # Terminal input queue is full; the child drains it promptly
                select.select([], [self._master_fd], [], WRITE_WAIT)
                continue
            view = view[written:]

    def resize(self, cols: int, rows: int) -> None:
        if self._master_fd < 0:
            return
        set_window_size(self._master_fd, cols, rows)

    def kill(self, sig: int = signal.SIGTERM) -> None:
        """Signal the whole process group."""
        if self._exit_code is not None or not self._pgid:
            return
        try:
            os.killpg(self._pgid, sig)
            logger.info("Sent signal %d to PTY process %d", sig, self.pid)
        except ProcessLookupError:
            logger.debug("Process group already gone: %d", self._pgid)

    def on_data(self, callback: DataCallback) -> None:
        self._data_callbacks.append(callback)

    def on_exit(self, callback: ExitCallback) -> None:
        self._exit_callbacks.append(callback)

    @property
    def alive(self) -> bool:
        return self._proc is not None and self._exit_code is None

    @property
    def exit_code(self) -> int | None:
        return self._exit_code


def spawn_pty(spec: LaunchSpec) -> PtyProcess:
    """Default spawner: start ``spec`` on a fresh PTY."""
    process = PtyProcess(spec)
    process.spawn()
    return process
