"""Raw key sequences for driving TUI prompts with ``send_raw_input``."""

from __future__ import annotations

UP = "\x1b[A"
DOWN = "\x1b[B"
ENTER = "\r"
ESC = "\x1b"
TAB = "\t"
CTRL_C = "\x03"

KEYS: dict[str, str] = {
    "up": UP,
    "down": DOWN,
    "enter": ENTER,
    "esc": ESC,
    "tab": TAB,
    "ctrl-c": CTRL_C,
}

ALIASES: dict[str, str] = {
    "arrow-up": "up",
    "keyup": "up",
    "arrow-down": "down",
    "keydown": "down",
    "return": "enter",
    "escape": "esc",
    "cancel": "esc",
}


def key_sequence(name: str) -> str:
    """Resolve a key name or alias (case-insensitive) to its sequence.

    Raises:
        KeyError: Unknown key name.
    """
    key = name.strip().lower()
    key = ALIASES.get(key, key)
    if key not in KEYS:
        raise KeyError(name)
    return KEYS[key]
