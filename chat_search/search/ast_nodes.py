"""Token and AST data classes for parsed search queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TokenType(str, Enum):
    """Lexical token categories produced by the tokenizer."""

    WORD = "WORD"
    QUOTED = "QUOTED"
    TITLE_PREFIX = "TITLE_PREFIX"
    OR_OPERATOR = "OR_OPERATOR"
    LEFT_PAREN = "LEFT_PAREN"
    RIGHT_PAREN = "RIGHT_PAREN"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """A lexical unit with its offset in the normalized query."""

    type: TokenType
    value: str
    position: int


class NodeType(str, Enum):
    """AST node kinds."""

    AND = "AND"
    OR = "OR"
    TITLE = "TITLE"
    EXACT = "EXACT"
    WORD = "WORD"


@dataclass
class SearchNode:
    """A node of the parsed query tree.

    ``AND`` / ``OR`` nodes carry their operands in ``children``. ``TITLE``
    carries exactly one child and restricts it to session titles.
    ``EXACT`` (quoted phrase) and ``WORD`` are leaves carrying ``value``.
    """

    type: NodeType
    value: str | None = None
    children: list[SearchNode] = field(default_factory=list)
    position: int | None = None

    @classmethod
    def word(cls, value: str, position: int | None = None) -> SearchNode:
        return cls(NodeType.WORD, value=value, position=position)

    @classmethod
    def exact(cls, value: str, position: int | None = None) -> SearchNode:
        return cls(NodeType.EXACT, value=value, position=position)

    @classmethod
    def title(cls, child: SearchNode) -> SearchNode:
        return cls(NodeType.TITLE, children=[child])

    @classmethod
    def and_(cls, children: list[SearchNode]) -> SearchNode:
        return cls(NodeType.AND, children=list(children))

    @classmethod
    def or_(cls, children: list[SearchNode]) -> SearchNode:
        return cls(NodeType.OR, children=list(children))

    @property
    def is_leaf(self) -> bool:
        return self.type in (NodeType.WORD, NodeType.EXACT)

    def to_query(self) -> str:
        """Render the node back into query syntax.

        Nested OR groups are parenthesized so the output parses back to an
        equivalent tree.
        """
        if self.type == NodeType.WORD:
            return self.value or ""
        if self.type == NodeType.EXACT:
            return f'"{self.value}"'
        if self.type == NodeType.TITLE:
            inner = self.children[0]
            rendered = inner.to_query()
            if not inner.is_leaf:
                rendered = f"({rendered})"
            return f"title:{rendered}"
        if self.type == NodeType.AND:
            parts = []
            for child in self.children:
                rendered = child.to_query()
                if child.type == NodeType.OR:
                    rendered = f"({rendered})"
                parts.append(rendered)
            return " ".join(parts)
        return " | ".join(child.to_query() for child in self.children)

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-friendly dictionary."""
        data: dict[str, object] = {"type": self.type.value}
        if self.value is not None:
            data["value"] = self.value
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        if self.position is not None:
            data["position"] = self.position
        return data


def collect_terms(node: SearchNode) -> list[str]:
    """Return the distinct leaf values of *node* in first-seen order."""
    terms: list[str] = []
    seen: set[str] = set()

    def _walk(current: SearchNode) -> None:
        if current.is_leaf:
            value = current.value or ""
            if value and value not in seen:
                seen.add(value)
                terms.append(value)
            return
        for child in current.children:
            _walk(child)

    _walk(node)
    return terms
