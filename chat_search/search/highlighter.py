"""Term highlighting and snippet extraction for search results.

The highlighter locates every occurrence of the matched terms in a piece of
text, merges overlapping occurrences and, for message and system-prompt
text, cuts a short window around the first match. The output is a list of
plain and highlighted segments whose concatenation is exactly the string to
display.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from chat_search.search.text import clean_text, display_width, is_blank

ContextType = Literal["title", "message", "system"]

ELLIPSIS = "..."


class HighlightType(str, Enum):
    EXACT = "exact"
    WORD = "word"
    TITLE = "title"
    PARTIAL = "partial"


_PRIORITY = {
    HighlightType.EXACT: 3,
    HighlightType.WORD: 2,
    HighlightType.TITLE: 2,
    HighlightType.PARTIAL: 1,
}


@dataclass(frozen=True)
class HighlightSegment:
    """A run of display text, highlighted or not."""

    text: str
    is_highlighted: bool = False
    highlight_type: HighlightType | None = None
    original_term: str | None = None


@dataclass
class _Occurrence:
    start: int
    end: int
    type: HighlightType
    # Contributing terms as (registration index, term).
    terms: list[tuple[int, str]] = field(default_factory=list)

    @property
    def original_term(self) -> str:
        return " ".join(term for _, term in sorted(self.terms))


def highlight_type_for(term: str) -> HighlightType:
    """Multi-word terms come from quoted phrases and highlight as exact."""
    return HighlightType.EXACT if " " in term else HighlightType.WORD


class Highlighter:
    """Builds highlighted segments for titles, messages and system prompts.

    Args:
        case_sensitive: Match terms without folding case.
        max_context_length: Display width kept when no term occurs at all.
        left_context_chars: Display width kept before the first match.
        right_context_chars: Display width kept after the first match.
    """

    def __init__(
        self,
        case_sensitive: bool = False,
        max_context_length: int = 56,
        left_context_chars: int = 16,
        right_context_chars: int = 40,
    ) -> None:
        self.case_sensitive = case_sensitive
        self.max_context_length = max_context_length
        self.left_context_chars = left_context_chars
        self.right_context_chars = right_context_chars

    def highlight(
        self,
        text: str,
        terms: list[str] | None = None,
        context_type: ContextType = "message",
    ) -> list[HighlightSegment]:
        if not text or not terms:
            return [HighlightSegment(text or "")]

        if context_type != "title":
            text = clean_text(text)

        occurrences = self._merge(self._find_occurrences(text, terms))
        if not occurrences:
            if context_type == "title":
                return [HighlightSegment(text)]
            return [HighlightSegment(self._head_truncate(text))]

        if context_type != "title":
            text, occurrences = self._truncate(text, occurrences)

        return self._build_segments(text, occurrences)

    def _find_occurrences(self, text: str, terms: list[str]) -> list[_Occurrence]:
        flags = 0 if self.case_sensitive else re.IGNORECASE
        found = []
        for index, term in enumerate(terms):
            if is_blank(term):
                continue
            kind = highlight_type_for(term)
            for m in re.finditer(re.escape(term), text, flags):
                found.append(_Occurrence(m.start(), m.end(), kind, [(index, term)]))
        return found

    @staticmethod
    def _merge(occurrences: list[_Occurrence]) -> list[_Occurrence]:
        """Merge overlapping or touching ranges, keeping the stronger type."""
        occurrences = sorted(occurrences, key=lambda o: o.start)
        merged: list[_Occurrence] = []
        for current in occurrences:
            if merged and current.start <= merged[-1].end:
                last = merged[-1]
                last.end = max(last.end, current.end)
                if _PRIORITY[current.type] > _PRIORITY[last.type]:
                    last.type = current.type
                for entry in current.terms:
                    if entry[1] not in (t for _, t in last.terms):
                        last.terms.append(entry)
            else:
                merged.append(current)
        return merged

    def _truncate(
        self, text: str, occurrences: list[_Occurrence]
    ) -> tuple[str, list[_Occurrence]]:
        primary = occurrences[0]

        start = primary.start
        width = 0.0
        for i in range(primary.start - 1, -1, -1):
            w = display_width(text[i])
            if width + w > self.left_context_chars:
                break
            width += w
            start = i

        end = primary.end
        width = 0.0
        for i in range(primary.end, len(text)):
            w = display_width(text[i])
            if width + w > self.right_context_chars:
                break
            width += w
            end = i + 1

        prefix = ELLIPSIS if start > 0 else ""
        suffix = ELLIPSIS if end < len(text) else ""
        shift = len(prefix) - start

        kept = []
        for occ in occurrences:
            if occ.end <= start or occ.start >= end:
                continue
            kept.append(
                _Occurrence(
                    max(occ.start, start) + shift,
                    min(occ.end, end) + shift,
                    occ.type,
                    occ.terms,
                )
            )
        return prefix + text[start:end] + suffix, kept

    def _head_truncate(self, text: str) -> str:
        width = 0.0
        for i, char in enumerate(text):
            w = display_width(char)
            if width + w > self.max_context_length:
                return text[:i] + ELLIPSIS
            width += w
        return text

    @staticmethod
    def _build_segments(text: str, occurrences: list[_Occurrence]) -> list[HighlightSegment]:
        segments = []
        pos = 0
        for occ in occurrences:
            if pos < occ.start:
                segments.append(HighlightSegment(text[pos : occ.start]))
            segments.append(
                HighlightSegment(
                    text[occ.start : occ.end],
                    is_highlighted=True,
                    highlight_type=occ.type,
                    original_term=occ.original_term,
                )
            )
            pos = occ.end
        if pos < len(text):
            segments.append(HighlightSegment(text[pos:]))
        return segments


def segments_to_markdown(segments: list[HighlightSegment]) -> str:
    return "".join(f"**{s.text}**" if s.is_highlighted else s.text for s in segments)


def quick_highlight(
    text: str,
    terms: list[str],
    context_type: ContextType = "message",
    **options,
) -> list[HighlightSegment]:
    """One-shot highlight with a throwaway :class:`Highlighter`."""
    return Highlighter(**options).highlight(text, terms, context_type)
