"""Whitespace normalization for extracted page text."""
from __future__ import annotations

import re
from typing import Optional

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
_WHITESPACE_RE = re.compile(r"\s")
_MULTI_SPACE_RE = re.compile(r" {2,}")

LINE_SEPARATOR = "\n"


def normalize_whitespace(text: Optional[str], multi_line: bool = True) -> str:
    """Collapse whitespace noise in text extracted from HTML.

    Every whitespace character becomes a regular space, runs of spaces are
    collapsed, each line is trimmed and empty lines are dropped.

    Args:
        text: Raw text. ``None`` is treated as an empty string.
        multi_line: Join surviving lines with a line separator. When False
            the lines are concatenated without any separator.

    Returns:
        Normalized text. Normalizing it again returns it unchanged.
    """
    if not text:
        return ""

    lines = []
    for line in _LINE_BREAK_RE.split(text):
        line = _WHITESPACE_RE.sub(" ", line)
        line = _MULTI_SPACE_RE.sub(" ", line).strip()
        if line:
            lines.append(line)

    separator = LINE_SEPARATOR if multi_line else ""
    return separator.join(lines)


def truncate(text: str, max_length: int) -> str:
    """Cut ``text`` down to at most ``max_length`` characters."""
    return text if len(text) <= max_length else text[:max_length]
