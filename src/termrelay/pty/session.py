"""Session: supervises one interactive CLI tool running on a PTY."""

from __future__ import annotations

import asyncio
import codecs
import functools
import logging
import os
import signal
import time

from termrelay.adapter.base import LaunchSpec
from termrelay.bus.wire import Wire
from termrelay.config import SessionSettings
from termrelay.errors import ConfirmNotPending, NotStarted, RelayError, StartupFailure
from termrelay.models import (
    OutputKind,
    OutputUnit,
    PendingConfirm,
    SessionInfo,
    SessionStatus,
)
from termrelay.output.classifier import classify
from termrelay.output.filter import OutputFilter
from termrelay.pty.buffer import OutputBuffer
from termrelay.pty.process import ProcessHandle, Spawner, spawn_pty

logger = logging.getLogger(__name__)


class Session:
    """A supervised terminal session for one CLI tool.

    Owns the process handle, the input queue and its single writer task,
    the output buffer and the status state machine::

        IDLE -> PROCESSING        input dispatched / confirm answered
        PROCESSING -> IDLE        no output for ``idle_timeout`` seconds
        * -> WAITING_CONFIRM      a confirm prompt was classified
        * -> ERROR                process exited with a non-zero code
        ERROR -> IDLE             only through an explicit restart

    Runtime failures never raise out of the output path; they are turned
    into status, a buffered ERROR unit and wire events.
    """

    def __init__(
        self,
        name: str,
        work_dir: str,
        launch: LaunchSpec,
        wire: Wire,
        settings: SessionSettings | None = None,
        output_filter: OutputFilter | None = None,
        spawner: Spawner = spawn_pty,
    ) -> None:
        self.name = name
        self.work_dir = work_dir
        self.launch = launch
        self.settings = settings or SessionSettings()
        self.buffer = OutputBuffer(max_size=self.settings.buffer_size)
        self.created_at = time.time()
        self.last_active_at = self.created_at

        self._wire = wire
        self._filter = output_filter or OutputFilter()
        self._spawner = spawner
        self._status = SessionStatus.IDLE
        self._pending: PendingConfirm | None = None
        self._proc: ProcessHandle | None = None
        self._exited: asyncio.Future[int] | None = None
        self._closing = False
        self._input: asyncio.Queue[str] | None = None
        self._input_task: asyncio.Task | None = None
        self._idle_handle: asyncio.TimerHandle | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Spawn the tool and wait out the warm-up period.

        Raises:
            StartupFailure: The process could not be spawned or exited
                before ``startup_delay`` elapsed. The session is left in
                ERROR with no process attached.
        """
        if self._proc is not None:
            raise RelayError(f"Session '{self.name}' is already running")

        logger.info(
            "Starting session %s in %s with %s", self.name, self.work_dir, self.launch.tool
        )
        if not os.path.isdir(self.work_dir):
            logger.info("Creating work directory: %s", self.work_dir)
            os.makedirs(self.work_dir, exist_ok=True)

        loop = asyncio.get_running_loop()
        self._closing = False
        self._exited = loop.create_future()
        self._decoder.reset()
        self._filter.reset()

        try:
            proc = self._spawner(self.launch)
        except OSError as e:
            self._status = SessionStatus.ERROR
            logger.error("Failed to spawn session %s: %s", self.name, e)
            raise StartupFailure(self.name, None, str(e)) from e

        self._proc = proc
        proc.on_data(functools.partial(self._handle_data, proc))
        proc.on_exit(functools.partial(self._handle_exit, proc))

        try:
            proc.resize(self.launch.cols, self.launch.rows)
            for chunk in self.launch.init_writes:
                proc.write(chunk)
        except OSError as e:
            logger.warning("Terminal setup for session %s failed: %s", self.name, e)

        # Race the warm-up delay against an early exit
        done, _ = await asyncio.wait({self._exited}, timeout=self.settings.startup_delay)
        if done:
            exit_code = self._exited.result()
            self._status = SessionStatus.ERROR
            logger.error(
                "Session %s failed to start: exited with code %s", self.name, exit_code
            )
            raise StartupFailure(self.name, exit_code)

        self._input = asyncio.Queue()
        self._input_task = asyncio.create_task(self._drain_input())
        self._status = SessionStatus.IDLE
        self._touch()
        logger.info("Session %s started", self.name)
        self._wire.send_session_created(self.name, self.work_dir, self.launch.tool)

    async def close(self) -> None:
        """Terminate the process: SIGTERM, grace period, then SIGKILL.

        Idempotent. Always detaches the process and emits SESSION_CLOSED.
        """
        logger.info("Closing session %s", self.name)
        proc = self._proc
        if proc is not None:
            self._closing = True
            self._cancel_idle_timer()
            try:
                proc.kill(signal.SIGTERM)
                exited = self._exited
                if exited is not None and not exited.done():
                    done, _ = await asyncio.wait(
                        {exited}, timeout=self.settings.close_grace
                    )
                    if not done:
                        proc.kill(signal.SIGKILL)
            except Exception as e:
                logger.error("Error terminating session %s: %s", self.name, e)
            self._proc = None

        self._stop_input_worker()
        self._cancel_idle_timer()
        self._pending = None
        self._status = SessionStatus.IDLE
        self._wire.send_session_closed(self.name)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def send_input(self, text: str) -> None:
        """Queue a line of input; the writer task appends the terminator.

        Raises:
            NotStarted: No process is running.
        """
        if self._proc is None or self._input is None:
            raise NotStarted(self.name)

        logger.info("Session %s sending input: %s", self.name, text)
        self._pending = None
        self._status = SessionStatus.PROCESSING
        self._touch()
        self._input.put_nowait(text)

    async def flush_input(self) -> None:
        """Wait until every queued input has been written."""
        if self._input is not None:
            await self._input.join()

    async def send_raw_input(self, data: bytes | str) -> None:
        """Write bytes verbatim, bypassing the queue (key simulation)."""
        proc = self._proc
        if proc is None:
            raise NotStarted(self.name)

        logger.info("Session %s sending raw input: %r", self.name, data)
        proc.write(data)
        self._touch()

    async def send_confirm_response(self, response: str) -> None:
        """Answer the pending confirmation.

        With nothing pending this only logs a warning.
        """
        pending = self._pending
        if pending is None:
            logger.warning("%s", ConfirmNotPending(self.name))
            return
        proc = self._proc
        if proc is None:
            raise NotStarted(self.name)

        proc.write(response)
        proc.write(self.launch.terminator)
        self._pending = None
        self._status = SessionStatus.PROCESSING
        self._touch()
        self._reset_idle_timer()
        self._wire.send_confirm_response(self.name, pending.confirm_id, response)

    def resize(self, cols: int, rows: int) -> None:
        proc = self._proc
        if proc is None:
            raise NotStarted(self.name)
        proc.resize(cols, rows)
        self.launch.cols, self.launch.rows = cols, rows

    async def _drain_input(self) -> None:
        """Single writer: one queued item, one terminator, in order."""
        assert self._input is not None
        queue = self._input
        while True:
            text = await queue.get()
            try:
                proc = self._proc
                if proc is None:
                    logger.warning("Session %s dropped input, process is gone", self.name)
                    continue
                proc.write(text)
                proc.write(self.launch.terminator)
                self._reset_idle_timer()
            except OSError as e:
                logger.warning("Session %s failed to write input: %s", self.name, e)
            finally:
                queue.task_done()

    def _stop_input_worker(self) -> None:
        if self._input_task is not None:
            self._input_task.cancel()
            self._input_task = None
        if self._input is not None:
            while not self._input.empty():
                self._input.get_nowait()
                self._input.task_done()
            self._input = None

    # ------------------------------------------------------------------
    # Output and exit
    # ------------------------------------------------------------------

    def _handle_data(self, proc: ProcessHandle, data: bytes) -> None:
        if proc is not self._proc or self._closing:
            return
        text = self._decoder.decode(data)
        if text:
            for unit in classify(text):
                if self._filter.should_drop(unit):
                    logger.debug("Session %s filtered: %r", self.name, unit.content[:80])
                    continue
                self._handle_unit(unit)
        self._reset_idle_timer()

    def _handle_unit(self, unit: OutputUnit) -> None:
        if unit.requires_confirm:
            self._status = SessionStatus.WAITING_CONFIRM
            self._pending = PendingConfirm.from_unit(unit)
            logger.info(
                "Session %s waiting for confirm %s: %s",
                self.name,
                self._pending.confirm_id,
                list(unit.options),
            )
            self._wire.send_confirm_required(self.name, unit)
        elif unit.kind == OutputKind.ERROR:
            self.buffer.append(unit)
            self._wire.send_error(self.name, unit)
        else:
            self.buffer.append(unit)

        self._wire.send_output(self.name, unit)

    def _handle_exit(self, proc: ProcessHandle, exit_code: int) -> None:
        if proc is not self._proc:
            logger.debug("Ignoring exit of stale process for session %s", self.name)
            return
        if self._exited is not None and not self._exited.done():
            self._exited.set_result(exit_code)

        # The input worker only exists once warm-up has passed
        during_startup = self._input_task is None
        self._proc = None
        self._cancel_idle_timer()
        self._stop_input_worker()
        self._pending = None
        if self._closing:
            return

        logger.info("Session %s exited: code=%s", self.name, exit_code)
        if exit_code != 0 or during_startup:
            self._status = SessionStatus.ERROR
            unit = OutputUnit.error(f"Process exited with code {exit_code}")
            self.buffer.append(unit)
            self._wire.send_error(self.name, unit)
        else:
            self._status = SessionStatus.IDLE

    # ------------------------------------------------------------------
    # Idle timer
    # ------------------------------------------------------------------

    def _reset_idle_timer(self) -> None:
        self._cancel_idle_timer()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self.settings.idle_timeout, self._on_idle)

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _on_idle(self) -> None:
        self._idle_handle = None
        if self._status == SessionStatus.PROCESSING:
            logger.debug("Session %s idle", self.name)
            self._status = SessionStatus.IDLE

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_buffered_output(self) -> list[OutputUnit]:
        """Drain and return buffered output units."""
        return self.buffer.drain()

    def peek_output(self, n: int = 10) -> list[OutputUnit]:
        return self.buffer.peek_last(n)

    def get_info(self) -> SessionInfo:
        return SessionInfo(
            name=self.name,
            work_dir=self.work_dir,
            status=self._status,
            created_at=self.created_at,
            last_active_at=self.last_active_at,
            tool=self.launch.tool,
        )

    def _touch(self) -> None:
        self.last_active_at = time.time()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def pending_confirm(self) -> PendingConfirm | None:
        return self._pending

    @property
    def alive(self) -> bool:
        return self._proc is not None

    @property
    def tool(self) -> str:
        return self.launch.tool
