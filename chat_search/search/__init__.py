"""Query language and search engine for chat sessions.

Queries are plain words (implicit AND), ``|`` for OR, parentheses for
grouping, ``"quoted phrases"`` and a ``title:`` / ``标题:`` prefix that
scopes a term or group to session titles. Full-width punctuation is
accepted.
"""

from chat_search.search.ast_nodes import NodeType, SearchNode, Token, TokenType, collect_terms
from chat_search.search.cancellation import CancellationToken
from chat_search.search.executor import MatchResult, SearchExecutor
from chat_search.search.highlighter import (
    HighlightSegment,
    Highlighter,
    HighlightType,
    quick_highlight,
    segments_to_markdown,
)
from chat_search.search.options import SearchOptions, SearchSettings
from chat_search.search.parser import ValidationResult, parse_query, validate_query
from chat_search.search.results import ResultBuilder, SearchResult
from chat_search.search.service import (
    SearchResponse,
    SearchService,
    SearchStats,
    classify_complexity,
)
from chat_search.search.tokenizer import SearchTokenizer, tokenize

__all__ = [
    "CancellationToken",
    "HighlightSegment",
    "HighlightType",
    "Highlighter",
    "MatchResult",
    "NodeType",
    "ResultBuilder",
    "SearchExecutor",
    "SearchNode",
    "SearchOptions",
    "SearchResponse",
    "SearchResult",
    "SearchService",
    "SearchSettings",
    "SearchStats",
    "SearchTokenizer",
    "Token",
    "TokenType",
    "ValidationResult",
    "classify_complexity",
    "collect_terms",
    "parse_query",
    "quick_highlight",
    "segments_to_markdown",
    "tokenize",
    "validate_query",
]
