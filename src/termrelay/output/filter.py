"""Noise filter for normal output (spinners, repeats, tiny fragments)."""

from __future__ import annotations

import re

from termrelay.config import FilterSettings
from termrelay.models import OutputKind, OutputUnit

_PROGRESS = re.compile(r"Crunch|processing|loading|thinking|Tinkering|Meandering", re.I)
_WHITESPACE = re.compile(r"\s")
PROGRESS_MAX_LENGTH = 50


class OutputFilter:
    """Decides which NORMAL units are worth delivering.

    Stateful: remembers the last kept content to drop consecutive repeats,
    so each session owns its own instance. CONFIRM and ERROR units always
    pass.
    """

    def __init__(self, settings: FilterSettings | None = None) -> None:
        self._settings = settings or FilterSettings()
        self._last_content = ""

    def should_drop(self, unit: OutputUnit) -> bool:
        if unit.kind != OutputKind.NORMAL:
            return False
        content = unit.content

        for prefix in self._settings.prefixes:
            if content.startswith(prefix):
                return True

        if not self._settings.enabled:
            return False

        compact = _WHITESPACE.sub("", content)
        if len(compact) < self._settings.min_length:
            return True
        if content == self._last_content:
            return True
        if _PROGRESS.search(compact) and len(compact) <= PROGRESS_MAX_LENGTH:
            return True

        self._last_content = content
        return False

    def reset(self) -> None:
        self._last_content = ""
