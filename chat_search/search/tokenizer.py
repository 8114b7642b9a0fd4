"""Split a raw search query into a flat token stream."""

from __future__ import annotations

from chat_search.exceptions import SearchParseError
from chat_search.search.ast_nodes import Token, TokenType

# Full-width punctuation accepted in queries and its half-width form.
_FULL_WIDTH = str.maketrans(
    {
        "\uff1a": ":",  # full-width colon
        "\uff08": "(",
        "\uff09": ")",
        "\uff5c": "|",
        "\u201c": '"',  # curly quotes
        "\u201d": '"',
        "\uff02": '"',
    }
)

# Keywords that turn ``keyword:`` into a title-scope prefix.
TITLE_KEYWORDS: frozenset[str] = frozenset({"title", "标题"})

# Characters that end a bare word.
_WORD_DELIMITERS = frozenset('()|"')


def normalize_query(raw: str) -> str:
    """Map full-width query punctuation to ASCII and trim whitespace."""
    return raw.translate(_FULL_WIDTH).strip()


def is_title_keyword(value: str) -> bool:
    return value.lower() in TITLE_KEYWORDS


class SearchTokenizer:
    """Lexer over a normalized query string."""

    def __init__(self, query: str) -> None:
        self.text = normalize_query(query)
        self._pos = 0
        self._tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        """Return the token stream, always terminated by a single EOF token.

        Raises:
            SearchParseError: On an unterminated or empty quoted phrase.
        """
        self._pos = 0
        self._tokens = []
        text = self.text

        while True:
            self._skip_whitespace()
            if self._pos >= len(text):
                break

            char = text[self._pos]
            start = self._pos

            if char == "(":
                self._emit(TokenType.LEFT_PAREN, char, start)
                self._pos += 1
            elif char == ")":
                self._emit(TokenType.RIGHT_PAREN, char, start)
                self._pos += 1
            elif char == "|":
                self._emit(TokenType.OR_OPERATOR, char, start)
                self._pos += 1
            elif char == '"':
                self._read_quoted(start)
            else:
                self._read_word(start)

        self._emit(TokenType.EOF, "", self._pos)
        return self._tokens

    def _emit(self, token_type: TokenType, value: str, position: int) -> None:
        self._tokens.append(Token(token_type, value, position))

    def _skip_whitespace(self) -> None:
        while self._pos < len(self.text) and self.text[self._pos].isspace():
            self._pos += 1

    def _read_quoted(self, start: int) -> None:
        end = self.text.find('"', start + 1)
        if end == -1:
            raise SearchParseError(
                "Unterminated quote",
                start,
                'Make sure quotes come in pairs, e.g. "search phrase"',
            )

        value = self.text[start + 1 : end]
        self._pos = end + 1

        if not value.strip():
            raise SearchParseError(
                "Quoted phrase cannot be empty",
                start,
                'Put the text to search for between the quotes, e.g. "machine learning"',
            )

        self._emit(TokenType.QUOTED, value, start)

    def _read_word(self, start: int) -> None:
        text = self.text
        pos = start

        # Scan up to the first colon to check for a title prefix.
        while pos < len(text) and not self._ends_word(text[pos]) and text[pos] != ":":
            pos += 1

        if pos < len(text) and text[pos] == ":" and is_title_keyword(text[start:pos]):
            self._pos = pos + 1
            self._emit(TokenType.TITLE_PREFIX, text[start:pos], start)
            return

        # Any other colon belongs to the word itself.
        while pos < len(text) and not self._ends_word(text[pos]):
            pos += 1

        self._pos = pos
        self._emit(TokenType.WORD, text[start:pos], start)

    @staticmethod
    def _ends_word(char: str) -> bool:
        return char.isspace() or char in _WORD_DELIMITERS


def tokenize(query: str) -> list[Token]:
    """Tokenize *query* after full-width normalization."""
    return SearchTokenizer(query).tokenize()
