"""
Text cleanup applied before every embedding request.
"""

from __future__ import annotations

import re


MAX_TEXT_LENGTH = 512

_WHITESPACE_RE = re.compile(r"\s+")
_DISALLOWED_RE = re.compile(r"[^\w \-.,!?]")
_SPACE_RUN_RE = re.compile(r" {2,}")


def normalize_text(text: str) -> str:
    """
    Return a cleaned, bounded version of *text*.

    Whitespace runs become a single space, characters outside word
    characters and ``- . , ! ?`` are dropped, and the result is trimmed and
    cut to ``MAX_TEXT_LENGTH`` characters. Truncation is silent.
    """
    cleaned = _WHITESPACE_RE.sub(" ", text)
    cleaned = _DISALLOWED_RE.sub("", cleaned)
    # Dropping characters can leave two spaces side by side.
    cleaned = _SPACE_RUN_RE.sub(" ", cleaned).strip()
    return cleaned[:MAX_TEXT_LENGTH].rstrip()
