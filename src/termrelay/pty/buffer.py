"""Size-bounded output buffer for sessions."""

from __future__ import annotations

import dataclasses
import threading
from collections import deque

from termrelay.models import OutputUnit

# Fixed per-unit bookkeeping cost added to the content length
UNIT_OVERHEAD = 100


def estimate_size(unit: OutputUnit) -> int:
    return len(unit.content) + UNIT_OVERHEAD


class OutputBuffer:
    """Thread-safe FIFO of output units, bounded by estimated byte size.

    ``append()`` evicts the oldest units until the new one fits under
    ``max_size``. A single unit too large for an empty buffer keeps only the
    tail of its content. The buffer never blocks a producer.
    """

    def __init__(self, max_size: int = 100_000) -> None:
        self._units: deque[OutputUnit] = deque()
        self._size: int = 0
        self._max_size = max_size
        self._lock = threading.Lock()

    def append(self, unit: OutputUnit) -> None:
        """Append a unit, evicting oldest-first to stay under the cap."""
        unit_size = estimate_size(unit)
        if unit_size > self._max_size:
            room = self._max_size - UNIT_OVERHEAD
            if room <= 0:
                with self._lock:
                    self._units.clear()
                    self._size = 0
                return
            # Keep the tail; the end of a long output is usually what matters
            unit = dataclasses.replace(unit, content=unit.content[-room:])
            unit_size = estimate_size(unit)

        with self._lock:
            while self._units and self._size + unit_size > self._max_size:
                removed = self._units.popleft()
                self._size -= estimate_size(removed)
            self._units.append(unit)
            self._size += unit_size

    def drain(self) -> list[OutputUnit]:
        """Return all buffered units in order and clear the buffer."""
        with self._lock:
            units = list(self._units)
            self._units.clear()
            self._size = 0
        return units

    def peek_last(self, n: int) -> list[OutputUnit]:
        """Read the last N units without removing them."""
        if n <= 0:
            return []
        with self._lock:
            units = list(self._units)
        return units[-n:] if len(units) > n else units

    def clear(self) -> None:
        """Clear the buffer."""
        with self._lock:
            self._units.clear()
            self._size = 0

    @property
    def size(self) -> int:
        """Current cumulative estimated size."""
        with self._lock:
            return self._size

    @property
    def max_size(self) -> int:
        return self._max_size

    def is_empty(self) -> bool:
        with self._lock:
            return not self._units

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)
