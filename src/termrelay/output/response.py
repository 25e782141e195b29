"""Map a user's free-form reply onto a presented option."""

from __future__ import annotations

from collections.abc import Sequence


def match_option(reply: str, options: Sequence[str] | None) -> str | None:
    """Resolve ``reply`` to one of ``options``.

    Tries, in order: a 1-based option number, a case-insensitive exact
    match, then a substring match in either direction. With no options the
    reply is passed through unchanged.

    Returns:
        The chosen option text, or None if nothing matches.
    """
    if not options:
        return reply

    text = reply.strip()
    if text.isdigit():
        number = int(text)
        if 1 <= number <= len(options):
            return options[number - 1]

    lowered = text.lower()
    for option in options:
        if option.lower() == lowered:
            return option

    if not lowered:
        return None
    for option in options:
        candidate = option.lower()
        if lowered in candidate or candidate in lowered:
            return option
    return None
