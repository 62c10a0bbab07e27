"""Filesystem-safe path segments."""

from __future__ import annotations

import re

MAX_SEGMENT_LENGTH = 100
FALLBACK_SEGMENT = "untitled"

_RESERVED_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[\W_]+")


def sanitize_segment(name: str) -> str:
    """Make `name` usable as a single path segment.

    Pure and deterministic. Does not guarantee uniqueness; callers that need
    distinct paths add their own suffixes.
    """
    segment = _RESERVED_RE.sub("_", name or "")
    segment = _WHITESPACE_RE.sub("_", segment)
    segment = segment[:MAX_SEGMENT_LENGTH]
    if segment.strip(".") == "":
        return FALLBACK_SEGMENT
    return segment


def lookup_key(name: str) -> str:
    """Comparison key tolerant of filesystem renames: case and punctuation folded."""
    return _NON_WORD_RE.sub("_", sanitize_segment(name).casefold()).strip("_")
