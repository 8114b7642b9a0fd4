"""Search service: the public entry point of the engine."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

from chat_search.search.ast_nodes import collect_terms
from chat_search.search.cancellation import CancellationToken
from chat_search.search.executor import SearchExecutor
from chat_search.search.highlighter import ContextType, HighlightSegment, Highlighter
from chat_search.search.options import SearchOptions, SearchSettings
from chat_search.search.parser import ValidationResult, parse_query, validate_query
from chat_search.search.results import (
    FIELD_MESSAGE,
    FIELD_SYSTEM,
    FIELD_TITLE,
    ResultBuilder,
    SearchResult,
)
from chat_search.store.repository import SessionRepository

log = logging.getLogger(__name__)

QueryComplexity = Literal["simple", "moderate", "complex"]

_COMPLEX_RE = re.compile(r"\([^)]*\)|（[^）]*）|标题[:：]|title[:：]", re.IGNORECASE)
_MODERATE_RE = re.compile(r'\||"[^"]*"|“[\s\S]*?”')


def classify_complexity(query: str) -> QueryComplexity:
    """Rough label of how much syntax a query uses."""
    if _COMPLEX_RE.search(query):
        return "complex"
    if _MODERATE_RE.search(query):
        return "moderate"
    return "simple"


@dataclass
class SearchStats:
    total_sessions: int = 0
    sessions_with_title_match: int = 0
    sessions_with_message_match: int = 0
    sessions_with_system_match: int = 0
    total_matches: int = 0
    search_duration: float = 0.0
    query_complexity: QueryComplexity = "simple"

    @classmethod
    def from_results(
        cls,
        results: list[SearchResult],
        *,
        total_sessions: int,
        search_duration: float,
        query_complexity: QueryComplexity,
    ) -> SearchStats:
        def count(name: str) -> int:
            return sum(1 for r in results if name in r.matched_fields)

        return cls(
            total_sessions=total_sessions,
            sessions_with_title_match=count(FIELD_TITLE),
            sessions_with_message_match=count(FIELD_MESSAGE),
            sessions_with_system_match=count(FIELD_SYSTEM),
            total_matches=len(results),
            search_duration=search_duration,
            query_complexity=query_complexity,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSessions": self.total_sessions,
            "sessionsWithTitleMatch": self.sessions_with_title_match,
            "sessionsWithMessageMatch": self.sessions_with_message_match,
            "sessionsWithSystemMatch": self.sessions_with_system_match,
            "totalMatches": self.total_matches,
            "searchDuration": self.search_duration,
            "queryComplexity": self.query_complexity,
        }


@dataclass
class SearchResponse:
    results: list[SearchResult] = field(default_factory=list)
    stats: SearchStats = field(default_factory=SearchStats)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


class SearchService:
    """Runs queries against a session repository.

    Only one search is live per service: starting a new one cancels the
    previous one, which then resolves to an empty result set.

    Args:
        repository: Where sessions, messages and system prompts come from.
        settings: Engine defaults; per-call :class:`SearchOptions` override them.
        highlighter: Used by :meth:`highlight`; a default one is created if omitted.
    """

    def __init__(
        self,
        repository: SessionRepository,
        settings: SearchSettings | None = None,
        highlighter: Highlighter | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or SearchSettings()
        self.highlighter = highlighter or Highlighter(case_sensitive=self.settings.case_sensitive)
        self._current_token: CancellationToken | None = None

    async def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        """Run *query* and return ranked results with statistics.

        Raises:
            SearchParseError: If the query is malformed.
        """
        started = time.perf_counter()
        options = options or SearchOptions()
        query = query.strip()

        self.cancel_current_search()
        token = CancellationToken(parent=options.signal)
        self._current_token = token

        try:
            if not query:
                return SearchResponse(stats=SearchStats(search_duration=_elapsed_ms(started)))

            complexity = classify_complexity(query)
            ast = parse_query(query)
            settings = options.apply(self.settings)

            sessions = await self.repository.list_sessions()
            if token.cancelled:
                return self._cancelled(len(sessions), started, complexity)

            match = await SearchExecutor(sessions, self.repository, token, settings).execute(ast)
            builder = ResultBuilder(sessions, self.repository, token, settings)
            results = await builder.build(match, collect_terms(ast))

            if token.cancelled:
                return self._cancelled(len(sessions), started, complexity)

            stats = SearchStats.from_results(
                results,
                total_sessions=len(sessions),
                search_duration=_elapsed_ms(started),
                query_complexity=complexity,
            )
            log.debug(
                "Search %r (%s): %d of %d sessions in %.1f ms",
                query,
                complexity,
                stats.total_matches,
                stats.total_sessions,
                stats.search_duration,
            )
            return SearchResponse(results=results, stats=stats)
        finally:
            if self._current_token is token:
                self._current_token = None

    def _cancelled(
        self, total_sessions: int, started: float, complexity: QueryComplexity
    ) -> SearchResponse:
        log.debug("Search cancelled after %.1f ms", _elapsed_ms(started))
        return SearchResponse(
            stats=SearchStats(
                total_sessions=total_sessions,
                search_duration=_elapsed_ms(started),
                query_complexity=complexity,
            )
        )

    def validate(self, query: str) -> ValidationResult:
        return validate_query(query)

    def cancel_current_search(self) -> None:
        if self._current_token is not None:
            self._current_token.cancel()
            self._current_token = None

    def highlight(
        self,
        text: str,
        terms: list[str],
        context_type: ContextType = "message",
    ) -> list[HighlightSegment]:
        return self.highlighter.highlight(text, terms, context_type)
