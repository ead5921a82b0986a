import math
import re
from collections.abc import Iterable

from studyloop.domain.constants import TRUNCATION_MARKER

_WORD_SPLIT_RE = re.compile(r"\W+")


# ---------- Normalization ----------


def normalize_target(value: str) -> str:
    """Comparison key for learning targets: trimmed and case-insensitive."""
    return value.strip().lower()


def word_set(text: str) -> set[str]:
    """Lowercase word tokens of a text, split on non-word characters."""
    return {token for token in _WORD_SPLIT_RE.split(text.lower()) if token}


def dedupe(items: Iterable[str]) -> list[str]:
    """Remove duplicates, keeping the first occurrence's position."""
    return list(dict.fromkeys(items))


# ---------- Truncation ----------


def truncate_keep_tail(text: str, max_chars: int) -> str:
    """
    Shorten text to at most max_chars, keeping its end.

    A truncated result is prefixed with an ellipsis marker unless the budget
    is too small to hold one.
    """
    if len(text) <= max_chars:
        return text
    if max_chars <= 0:
        return ""
    if max_chars <= len(TRUNCATION_MARKER):
        return text[-max_chars:]
    return TRUNCATION_MARKER + text[-(max_chars - len(TRUNCATION_MARKER)) :]


# ---------- Arithmetic ----------


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)
