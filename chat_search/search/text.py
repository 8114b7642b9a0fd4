"""Text helpers shared by the executor, result builder and highlighter."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Collapse newlines and whitespace runs to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def fold(text: str, case_sensitive: bool = False) -> str:
    """Return *text* in the form used for substring comparison."""
    return text if case_sensitive else text.lower()


def is_blank(term: str | None) -> bool:
    """True for None, empty and whitespace-only terms; those never match."""
    return not term or not term.strip()


def find_matched_terms(text: str, candidates: list[str], case_sensitive: bool = False) -> list[str]:
    """Return the candidates occurring in *text*, in candidate order."""
    if not text:
        return []
    haystack = fold(text, case_sensitive)
    return [
        term
        for term in candidates
        if not is_blank(term) and fold(term, case_sensitive) in haystack
    ]


def display_width(char: str) -> float:
    """Display weight of one character for snippet sizing.

    Wide and full-width letters (CJK ideographs, kana, hangul) count 1,
    other letters and digits 0.5. Whitespace, punctuation and symbols
    count 0, including full-width punctuation and emoji.
    """
    if not char.isalnum():
        return 0
    if unicodedata.east_asian_width(char) in ("W", "F"):
        return 1
    return 0.5


def text_display_width(text: str) -> float:
    return sum(display_width(c) for c in text)
