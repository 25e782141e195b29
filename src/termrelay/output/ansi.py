"""Terminal escape handling: flatten redraw sequences into readable text."""

from __future__ import annotations

import re

# Absolute positioning: ESC [ row ; col H  (or f)
_CURSOR_POSITION = re.compile(r"\x1b\[(\d+);(\d+)([Hf])")
# Relative moves that carry layout we want to keep
_CURSOR_FORWARD = re.compile(r"\x1b\[(\d+)C")
_INSERT_BLANKS = re.compile(r"\x1b\[(\d+)@")
_CURSOR_DOWN = re.compile(r"\x1b\[(\d+)B")

_ESCAPE_PATTERNS = [
    # OSC, terminated by BEL or ST (covers OSC 8 hyperlinks and titles)
    re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"),
    # Unterminated OSC at the end of a chunk
    re.compile(r"\x1b\][^\x07\x1b]*"),
    # CSI with any parameter/intermediate bytes: colours, modes, bracketed paste
    re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]"),
    # Charset designation
    re.compile(r"\x1b[()*+][A-Za-z0-9]"),
    # Remaining two-character escapes (keypad mode, save/restore cursor, ...)
    re.compile(r"\x1b[=>78A-Za-z\\]"),
]


def normalize_cursor(text: str) -> str:
    """Turn cursor movement into the whitespace it would have produced.

    Row tracking is local to this call, so a redraw chunk is read as if the
    screen started at row 0.
    """
    current_row = 0

    def _position(match: re.Match[str]) -> str:
        nonlocal current_row
        row = int(match.group(1))
        col = int(match.group(2))
        if row > current_row:
            breaks = "\n" * (row - current_row)
            current_row = row
            return breaks + (" " * (col - 1) if col > 1 else "")
        if row == current_row and col > 1:
            return " " * (col - 1)
        return ""

    result = _CURSOR_POSITION.sub(_position, text)
    result = _CURSOR_FORWARD.sub(lambda m: " " * int(m.group(1)), result)
    result = _INSERT_BLANKS.sub(lambda m: " " * int(m.group(1)), result)
    result = _CURSOR_DOWN.sub(lambda m: "\n" * int(m.group(1)), result)
    return result


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences from text."""
    for pattern in _ESCAPE_PATTERNS:
        text = pattern.sub("", text)
    return text


def sanitize_control_chars(text: str) -> str:
    """Remove non-printing characters.

    Keeps printable chars, tabs, newlines, and carriage returns.
    Strips everything else (C0/C1 controls, DEL, stray ESC, format chars).
    """
    cleaned = []
    for ch in text:
        cp = ord(ch)
        if ch in ("\t", "\n", "\r"):
            cleaned.append(ch)
        elif cp >= 32 and cp not in range(0x7F, 0xA0):
            if cp not in range(0xFFF9, 0xFFFC):
                cleaned.append(ch)
    return "".join(cleaned)


def clean_terminal_text(text: str) -> str:
    """Full pipeline: cursor normalisation, escape stripping, control removal."""
    return sanitize_control_chars(strip_ansi(normalize_cursor(text)))
