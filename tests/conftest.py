"""Shared fixtures: an in-memory stand-in for the PTY process handle."""

from __future__ import annotations

import asyncio
import signal
from typing import Callable

import pytest

from termrelay.adapter.base import LaunchSpec
from termrelay.config import RelayConfig, SessionSettings


class FakeProcess:
    """Records writes and lets tests drive output and exit by hand."""

    def __init__(
        self,
        spec: LaunchSpec,
        exit_on_start: int | None = None,
        exit_on_term: bool = True,
    ) -> None:
        self.spec = spec
        self.pid = 4242
        self.written: list[bytes] = []
        self.signals: list[int] = []
        self.size = (spec.cols, spec.rows)
        self.exit_on_term = exit_on_term
        self._data_callbacks: list[Callable[[bytes], None]] = []
        self._exit_callbacks: list[Callable[[int], None]] = []
        self.exited = False
        if exit_on_start is not None:
            asyncio.get_running_loop().call_soon(self.exit, exit_on_start)

    def write(self, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode()
        self.written.append(data)

    def resize(self, cols: int, rows: int) -> None:
        self.size = (cols, rows)

    def kill(self, sig: int = signal.SIGTERM) -> None:
        self.signals.append(sig)
        if self.exited:
            return
        if sig == signal.SIGKILL or self.exit_on_term:
            asyncio.get_running_loop().call_soon(self.exit, 128 + sig)

    def on_data(self, callback: Callable[[bytes], None]) -> None:
        self._data_callbacks.append(callback)

    def on_exit(self, callback: Callable[[int], None]) -> None:
        self._exit_callbacks.append(callback)

    # -- test helpers --

    def feed(self, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode()
        for cb in list(self._data_callbacks):
            cb(data)

    def exit(self, code: int) -> None:
        if self.exited:
            return
        self.exited = True
        for cb in list(self._exit_callbacks):
            cb(code)

    @property
    def output(self) -> bytes:
        return b"".join(self.written)


class FakeSpawner:
    """Spawner that hands out FakeProcess instances and remembers them."""

    def __init__(self) -> None:
        self.processes: list[FakeProcess] = []
        self.exit_on_start: int | None = None
        self.exit_on_term = True
        self.fail_with: OSError | None = None

    def __call__(self, spec: LaunchSpec) -> FakeProcess:
        if self.fail_with is not None:
            raise self.fail_with
        proc = FakeProcess(spec, self.exit_on_start, self.exit_on_term)
        self.processes.append(proc)
        return proc

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


FAST_SESSION = SessionSettings(
    max_sessions=3,
    buffer_size=10_000,
    idle_timeout=0.05,
    startup_delay=0.02,
    close_grace=0.05,
)


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def fast_settings() -> SessionSettings:
    return FAST_SESSION.model_copy()


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(session=FAST_SESSION.model_copy())
