"""Fragment (``#...``) tracker removal on the raw fragment text."""

from __future__ import annotations

import re
from typing import Iterable

_LEADING_SEPARATORS = re.compile(r"^[#&]+")
_TRAILING_SEPARATORS = re.compile(r"[#&]+$")


def count_tracker_tokens(fragment: str, patterns: Iterable[re.Pattern[str]]) -> int:
    """Number of tracker tokens *fragment* carries across all *patterns*."""
    if not fragment:
        return 0
    total = 0
    remaining = fragment
    for pattern in patterns:
        remaining, hits = pattern.subn("", remaining)
        total += hits
    return total


def clean_fragment(fragment: str, patterns: Iterable[re.Pattern[str]]) -> str:
    """Remove tracker tokens from a ``#``-prefixed *fragment*.

    Patterns run in order over the raw string, since fragment grammar is not
    query grammar.  Afterwards a leading ``#``/``&`` run becomes a single
    ``#``, trailing separators are trimmed, and a bare ``#`` collapses to
    ``""`` so the delimiter disappears from the address.

    >>> import re
    >>> clean_fragment("#section&fbclid=abc&x=1", [re.compile(r"[#&]fbclid=[^&]*")])
    '#section&x=1'
    """
    if not fragment:
        return fragment

    cleaned = fragment
    for pattern in patterns:
        cleaned = pattern.sub("", cleaned)

    cleaned = _LEADING_SEPARATORS.sub("#", cleaned)
    cleaned = _TRAILING_SEPARATORS.sub("", cleaned)
    if cleaned in ("", "#"):
        return ""
    if not cleaned.startswith("#"):
        cleaned = "#" + cleaned
    return cleaned
