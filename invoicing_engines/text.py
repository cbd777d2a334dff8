"""
Text sanitizer for invoice line descriptions.

Invoice exports are consumed by accounting systems that treat ``;`` as a
field separator and break on embedded newlines, so every free-text value
goes through ``sanitize_text`` and a field-specific ``truncate`` before it
lands on a line.

Usage:
    from invoicing_engines.text import sanitize_text, truncate

    truncate(sanitize_text("Rivning;\\nbadrum  plan 2"), 512)
    # -> "Rivning, badrum plan 2"
"""

from __future__ import annotations

import re

ELLIPSIS = "…"

_LINE_BREAKS = re.compile(r"[\r\n]+")
_WHITESPACE = re.compile(r"\s+")


def sanitize_text(value: str | None) -> str:
    """Collapse line breaks and whitespace, replace ``;`` with ``,``, trim."""
    if not value:
        return ""
    value = _LINE_BREAKS.sub(" ", value)
    value = value.replace(";", ",")
    value = _WHITESPACE.sub(" ", value)
    return value.strip()


def truncate(value: str, max_length: int) -> str:
    """
    Cap ``value`` at ``max_length`` characters.

    Over-long values keep the first ``max_length - 1`` characters (trailing
    whitespace stripped) followed by a single ``…``.
    """
    if len(value) <= max_length:
        return value
    return value[: max_length - 1].strip() + ELLIPSIS
