"""Tests for termrelay.pty.buffer.OutputBuffer."""

from __future__ import annotations

import threading

from termrelay.models import OutputKind, OutputUnit
from termrelay.pty.buffer import UNIT_OVERHEAD, OutputBuffer, estimate_size


def _unit(text: str) -> OutputUnit:
    return OutputUnit.normal(text)


class TestOutputBufferBasics:
    def test_empty(self) -> None:
        buf = OutputBuffer()
        assert len(buf) == 0
        assert buf.size == 0
        assert buf.is_empty()
        assert buf.drain() == []

    def test_estimate_size(self) -> None:
        assert estimate_size(_unit("abcde")) == 5 + UNIT_OVERHEAD

    def test_append_tracks_size(self) -> None:
        buf = OutputBuffer()
        buf.append(_unit("hello"))
        buf.append(_unit("world!"))
        assert len(buf) == 2
        assert buf.size == 11 + 2 * UNIT_OVERHEAD

    def test_drain_returns_in_order_and_clears(self) -> None:
        buf = OutputBuffer()
        for text in ("a", "b", "c"):
            buf.append(_unit(text))
        units = buf.drain()
        assert [u.content for u in units] == ["a", "b", "c"]
        assert buf.is_empty()
        assert buf.size == 0
        assert buf.drain() == []

    def test_keeps_kind(self) -> None:
        buf = OutputBuffer()
        buf.append(OutputUnit.error("Error: boom"))
        assert buf.drain()[0].kind == OutputKind.ERROR

    def test_clear(self) -> None:
        buf = OutputBuffer()
        buf.append(_unit("x"))
        buf.clear()
        assert len(buf) == 0
        assert buf.size == 0


class TestOutputBufferPeek:
    def test_peek_last(self) -> None:
        buf = OutputBuffer()
        for i in range(5):
            buf.append(_unit(f"unit {i}"))
        assert [u.content for u in buf.peek_last(2)] == ["unit 3", "unit 4"]
        assert len(buf) == 5

    def test_peek_more_than_available(self) -> None:
        buf = OutputBuffer()
        buf.append(_unit("only"))
        assert [u.content for u in buf.peek_last(10)] == ["only"]

    def test_peek_zero(self) -> None:
        buf = OutputBuffer()
        buf.append(_unit("x"))
        assert buf.peek_last(0) == []


class TestOutputBufferEviction:
    def test_evicts_oldest_first(self) -> None:
        # Room for exactly three 10-char units
        buf = OutputBuffer(max_size=3 * (10 + UNIT_OVERHEAD))
        for i in range(5):
            buf.append(_unit(f"unit-{i:05d}"))
        contents = [u.content for u in buf.drain()]
        assert contents == ["unit-00002", "unit-00003", "unit-00004"]

    def test_size_never_exceeds_cap(self) -> None:
        cap = 1_000
        buf = OutputBuffer(max_size=cap)
        for i in range(200):
            buf.append(_unit("x" * (i % 37)))
            assert buf.size <= cap

    def test_newest_always_kept(self) -> None:
        buf = OutputBuffer(max_size=500)
        buf.append(_unit("a" * 300))
        buf.append(_unit("b" * 300))
        units = buf.drain()
        assert len(units) == 1
        assert units[0].content == "b" * 300

    def test_oversized_unit_keeps_tail(self) -> None:
        buf = OutputBuffer(max_size=150)
        buf.append(_unit("old"))
        buf.append(_unit("0123456789" * 10))
        units = buf.drain()
        assert len(units) == 1
        assert units[0].content == ("0123456789" * 10)[-50:]

    def test_cap_below_overhead_drops_everything(self) -> None:
        buf = OutputBuffer(max_size=50)
        buf.append(_unit("x"))
        assert buf.is_empty()
        assert buf.size == 0

    def test_max_size_property(self) -> None:
        assert OutputBuffer(max_size=1234).max_size == 1234


class TestOutputBufferThreads:
    def test_concurrent_appends(self) -> None:
        buf = OutputBuffer(max_size=10_000_000)

        def producer(tag: str) -> None:
            for i in range(200):
                buf.append(_unit(f"{tag}{i}"))

        threads = [threading.Thread(target=producer, args=(t,)) for t in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(buf) == 800
