"""Output classifier: raw terminal bytes to semantic output units.

This is a best-effort heuristic reader of TUI screens, not a terminal
emulator. It is pure and stateless per call: each chunk is flattened and
classified on its own, so it can be tested without any process plumbing.

Detection order for a chunk:

1. Interactive selection (a pointer-marked or numbered option list).
2. Bracketed confirm enumeration such as ``[Y/N]`` or ``[1-3]``.
3. Error patterns, otherwise normal output.

A chunk that yields a confirm produces exactly one CONFIRM unit and nothing
else.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from termrelay.models import OutputUnit, new_confirm_id
from termrelay.output.ansi import clean_terminal_text

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "Please choose an option"
MAX_RANGE_OPTIONS = 100

# Hints that the screen is a free-text input box, not a closed choice
_INPUT_HINTS = re.compile(r"don't ask|ctrl\+t|shift\+tab|tab to cycle", re.I)

_CONFIRM_HINTS = [
    re.compile(r"Enter to confirm|Press Enter|to confirm", re.I),
    re.compile(r"Esc to cancel|to cancel", re.I),
    re.compile(r"use (arrow |↑↓ )?keys", re.I),
    re.compile(r"Press .* to select", re.I),
]

_MARKED_OPTION = re.compile(r"^\s*[❯►→>]\s*(.+)$")
_NUMBERED_OPTION = re.compile(r"^\s*(\d+)[.)\]]\s*(.+)$")
_NUMBER_PREFIX = re.compile(r"^(\d+)\.\s*(.+)$")
_INDENTED = re.compile(r"^\s{2,}")
_HINT_LINE = re.compile(r"Enter to confirm|Esc to cancel", re.I)
_CONFIRM_WORDS = re.compile(r"yes|no|confirm|cancel|proceed|abort|continue|exit", re.I)

_YES_NO_SHORT = re.compile(r"\[Y/N\]", re.I)
_YES_NO_LONG = re.compile(r"\[Yes/No\]", re.I)
_NUMBER_RANGE = re.compile(r"\[(\d+)-(\d+)\]")
_CONTINUE_CANCEL = re.compile(r"\[(?:Continue/Cancel|Continue|Cancel)\]", re.I)
_PROCEED_ABORT = re.compile(r"\[(?:Proceed/Abort|Proceed|Abort)\]", re.I)

ERROR_PATTERNS = [
    re.compile(r"^[ \t]*Error:", re.M),
    re.compile(r"^[ \t]*ERROR:", re.M),
    re.compile(r"Failed to:", re.I),
    re.compile(r"Exception:", re.I),
    re.compile(r"command not found", re.I),
    re.compile(r"permission denied", re.I),
]


@dataclass
class Selection:
    """An interactive option list found on screen."""

    prompt: str
    options: list[str] = field(default_factory=list)
    selected_index: int = 0
    id: str = field(default_factory=lambda: new_confirm_id("interactive"))


def _has_confirm_hint(text: str) -> bool:
    return any(p.search(text) for p in _CONFIRM_HINTS)


def _prompt_before(lines: list[str], index: int) -> str:
    """Nearest non-empty, non-option line above ``index``."""
    for j in range(index - 1, -1, -1):
        prev = lines[j].strip()
        if prev and not _MARKED_OPTION.match(prev) and not _NUMBERED_OPTION.match(prev):
            return prev
    return ""


def detect_selection(text: str) -> Selection | None:
    """Find a closed selection list in flattened terminal text."""
    if _INPUT_HINTS.search(text):
        return None

    has_hint = _has_confirm_hint(text)
    lines = text.split("\n")
    options: list[str] = []
    selected_index = 0
    prompt = ""
    found_marker = False

    for i, raw in enumerate(lines):
        line = raw.strip()
        if not line:
            continue

        marked = _MARKED_OPTION.match(line)
        if marked:
            found_marker = True
            option = marked.group(1).strip()
            numbered = _NUMBER_PREFIX.match(option)
            if numbered:
                option = numbered.group(2).strip()
            options.append(option)
            selected_index = len(options) - 1
            if not prompt:
                prompt = _prompt_before(lines, i)
            continue

        if found_marker:
            numbered = _NUMBERED_OPTION.match(line)
            if numbered:
                options.append(numbered.group(2).strip())
                continue
            if _INDENTED.match(raw) and not _HINT_LINE.search(line):
                options.append(line)
                continue

        if has_hint and not found_marker:
            numbered = _NUMBERED_OPTION.match(line)
            if numbered:
                options.append(numbered.group(2).strip())
                if not prompt:
                    prompt = _prompt_before(lines, i)
                continue

    has_confirm_words = any(_CONFIRM_WORDS.search(opt) for opt in options)
    if len(options) >= 2 and (has_hint or has_confirm_words):
        return Selection(
            prompt=prompt or DEFAULT_PROMPT,
            options=options,
            selected_index=selected_index,
        )
    return None


def detect_bracket_confirm(text: str) -> list[str] | None:
    """Options for a bracketed enumeration prompt, or None."""
    if _YES_NO_SHORT.search(text):
        return ["Y", "N"]
    if _YES_NO_LONG.search(text):
        return ["Yes", "No"]
    match = _NUMBER_RANGE.search(text)
    if match:
        start, end = int(match.group(1)), int(match.group(2))
        if start <= end and end - start < MAX_RANGE_OPTIONS:
            return [str(n) for n in range(start, end + 1)]
    if _CONTINUE_CANCEL.search(text):
        return ["Continue", "Cancel"]
    if _PROCEED_ABORT.search(text):
        return ["Proceed", "Abort"]
    return None


def is_error(text: str) -> bool:
    return any(p.search(text) for p in ERROR_PATTERNS)


def render_selection(selection: Selection) -> str:
    """Readable rendering of a selection for chat delivery."""
    rule = "━" * 30
    lines = [rule, selection.prompt, rule, ""]
    lines.append(f"Reply with an option number (1-{len(selection.options)}) or its text:")
    lines.append("")
    for index, option in enumerate(selection.options):
        marker = "▶ " if index == selection.selected_index else "  "
        lines.append(f"{marker}{index + 1}. {option}")
    return "\n".join(lines)


def classify(data: bytes | str) -> list[OutputUnit]:
    """Classify one chunk of terminal output.

    Args:
        data: Raw bytes from the PTY (decoded as UTF-8 with replacement) or
              already-decoded text.

    Returns:
        Zero or more output units. Empty output yields ``[]``; a detected
        confirm yields exactly one CONFIRM unit.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    text = clean_terminal_text(data)
    content = text.strip()
    if not content:
        return []

    selection = detect_selection(text)
    if selection is not None:
        logger.debug(
            "Selection detected: %d options, prompt=%r",
            len(selection.options),
            selection.prompt,
        )
        return [
            OutputUnit.confirm(
                content=render_selection(selection),
                options=selection.options,
                confirm_id=selection.id,
                selected_index=selection.selected_index,
                prompt=selection.prompt,
            )
        ]

    options = detect_bracket_confirm(text)
    if options is not None:
        return [OutputUnit.confirm(content=content, options=options)]

    if is_error(text):
        return [OutputUnit.error(content)]
    return [OutputUnit.normal(content)]
