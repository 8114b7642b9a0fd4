"""Parse search query syntax into a SearchNode tree.

Grammar (lowest to highest precedence)::

    expr     := or
    or       := and ("|" and)*
    and      := primary+              (juxtaposition means AND)
    primary  := "(" or ")" | TITLE_PREFIX primary | QUOTED | WORD

``title:`` and ``标题:`` restrict the following primary to session titles.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from chat_search.exceptions import SearchParseError
from chat_search.search.ast_nodes import SearchNode, Token, TokenType
from chat_search.search.tokenizer import SearchTokenizer

# Anything that needs the full tokenizer: operators, quotes, colons
# (ASCII and full-width) or a title keyword.
_SPECIAL_SYNTAX_RE = re.compile(r'[|()":：（）｜“”＂]')
_TITLE_KEYWORD_RE = re.compile(r"标题|title", re.IGNORECASE)


class SearchParser:
    """Recursive-descent parser over a token stream."""

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self._current = 0

    def parse(self) -> SearchNode:
        """Parse the whole token stream.

        Raises:
            SearchParseError: On unexpected or trailing tokens and
                unbalanced parentheses.
        """
        node = self._parse_or()
        if not self._at_end():
            token = self._peek()
            raise SearchParseError(
                f"Unexpected symbol: {token.value}",
                token.position,
                "Check the query syntax; a closing parenthesis may be unmatched",
            )
        return node

    def _parse_or(self) -> SearchNode:
        operands = [self._parse_and()]
        while self._match(TokenType.OR_OPERATOR):
            operands.append(self._parse_and())
        if len(operands) == 1:
            return operands[0]
        return SearchNode.or_(operands)

    def _parse_and(self) -> SearchNode:
        operands = [self._parse_primary()]
        while not (
            self._at_end()
            or self._check(TokenType.OR_OPERATOR)
            or self._check(TokenType.RIGHT_PAREN)
        ):
            operands.append(self._parse_primary())
        if len(operands) == 1:
            return operands[0]
        return SearchNode.and_(operands)

    def _parse_primary(self) -> SearchNode:
        if self._match(TokenType.LEFT_PAREN):
            node = self._parse_or()
            self._consume(
                TokenType.RIGHT_PAREN,
                'Missing closing parenthesis ")"',
                "Make sure every ( has a matching )",
            )
            return node

        if self._match(TokenType.TITLE_PREFIX):
            return SearchNode.title(self._parse_primary())

        if self._match(TokenType.QUOTED):
            token = self._previous()
            return SearchNode.exact(token.value, token.position)

        if self._match(TokenType.WORD):
            token = self._previous()
            return SearchNode.word(token.value, token.position)

        token = self._peek()
        if token.type == TokenType.EOF:
            raise SearchParseError(
                "Unexpected end of query",
                token.position,
                "An operator or title: prefix must be followed by a search term",
            )
        raise SearchParseError(
            f"Unexpected symbol: {token.value}",
            token.position,
            "Check the query syntax",
        )

    # Token cursor helpers

    def _match(self, token_type: TokenType) -> bool:
        if self._check(token_type):
            self._advance()
            return True
        return False

    def _check(self, token_type: TokenType) -> bool:
        if self._at_end():
            return False
        return self._peek().type == token_type

    def _advance(self) -> Token:
        if not self._at_end():
            self._current += 1
        return self._previous()

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self) -> Token:
        return self.tokens[self._current]

    def _previous(self) -> Token:
        return self.tokens[self._current - 1]

    def _consume(self, token_type: TokenType, message: str, suggestion: str) -> Token:
        if self._check(token_type):
            return self._advance()
        raise SearchParseError(message, self._peek().position, suggestion)


def is_simple_query(query: str) -> bool:
    """Return True if *query* is plain words separated by whitespace."""
    return not _SPECIAL_SYNTAX_RE.search(query) and not _TITLE_KEYWORD_RE.search(query)


def parse_simple_query(query: str) -> SearchNode:
    """Build an AND-of-words tree without tokenizing."""
    words = query.split()
    if len(words) == 1:
        return SearchNode.word(words[0])
    return SearchNode.and_([SearchNode.word(word) for word in words])


def parse_query(query: str) -> SearchNode:
    """Parse a search query string into a SearchNode tree.

    Args:
        query: The raw query as typed by the user.

    Returns:
        Root node of the parsed tree.

    Raises:
        SearchParseError: If the query is empty or malformed.
    """
    if not query or not query.strip():
        raise SearchParseError(
            "Search query cannot be empty",
            0,
            "Type one or more words to search for",
        )

    if is_simple_query(query):
        return parse_simple_query(query)

    tokens = SearchTokenizer(query).tokenize()
    return SearchParser(tokens).parse()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a query without executing it."""

    valid: bool
    error: SearchParseError | None = None


def validate_query(query: str) -> ValidationResult:
    """Check *query* for syntax errors without running a search."""
    try:
        parse_query(query)
    except SearchParseError as e:
        return ValidationResult(valid=False, error=e)
    return ValidationResult(valid=True)
