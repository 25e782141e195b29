"""Output classification: turn redrawn terminal screens into output units."""

from termrelay.output.ansi import clean_terminal_text, normalize_cursor, strip_ansi
from termrelay.output.classifier import classify, detect_bracket_confirm, detect_selection
from termrelay.output.filter import OutputFilter
from termrelay.output.response import match_option

__all__ = [
    "classify",
    "clean_terminal_text",
    "detect_bracket_confirm",
    "detect_selection",
    "match_option",
    "normalize_cursor",
    "OutputFilter",
    "strip_ansi",
]
