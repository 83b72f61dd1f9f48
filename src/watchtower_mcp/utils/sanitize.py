"""Cleaning for untrusted strings: asset names and summarizer replies."""

import re
from collections.abc import Iterable
from typing import Any

# C0 and C1 control characters, newlines and carriage returns included
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")

# Longest symbol accepted from a model reply
MAX_SYMBOL_LENGTH = 32


def sanitize_text(text: str | None, max_length: int = 500) -> str | None:
    """
    Strip control characters and cap the length of an untrusted string.

    Text longer than max_length is cut and suffixed with "...".
    None passes through.
    """
    if text is None:
        return None
    text = _CONTROL_CHARS.sub("", text)
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text.strip()


def sanitize_symbols(values: Iterable[Any]) -> list[str]:
    """Coerce an untrusted symbol list to clean uppercase strings, dropping blanks."""
    out: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        symbol = sanitize_text(value, max_length=MAX_SYMBOL_LENGTH)
        if symbol:
            out.append(symbol.upper())
    return out
