"""Evaluate a SearchNode tree against the session store.

Every leaf is a plain substring test. Titles are checked from the snapshot;
message lists and system prompts are fetched through the repository only
for sessions whose title didn't already match. Sessions are processed in
fixed-size batches: concurrently within a batch, sequentially across
batches.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from chat_search.search.ast_nodes import NodeType, SearchNode
from chat_search.search.cancellation import CancellationToken
from chat_search.search.options import SearchSettings
from chat_search.search.text import fold, is_blank
from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData
from chat_search.store.repository import SessionRepository

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class MatchResult:
    """Sessions matched by one node and the terms that produced the match."""

    matched: bool = False
    sessions: set[str] = field(default_factory=set)
    matched_terms: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> MatchResult:
        return cls()


def iter_batches(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _union_terms(first: list[str], second: list[str]) -> list[str]:
    merged = list(first)
    for term in second:
        if term not in merged:
            merged.append(term)
    return merged


class SessionFetcher:
    """Time-bounded repository reads that degrade to None on failure."""

    def __init__(self, repository: SessionRepository, timeout: float) -> None:
        self.repository = repository
        self.timeout = timeout

    async def messages(self, session_id: str) -> list[ChatMessage] | None:
        return await self._fetch(self.repository.get_messages, session_id, "messages")

    async def system_prompt(self, session_id: str) -> SystemPromptData | None:
        return await self._fetch(self.repository.get_system_prompt, session_id, "system prompt")

    async def _fetch(
        self,
        fetch: Callable[[str], Awaitable[T]],
        session_id: str,
        what: str,
    ) -> T | None:
        try:
            return await asyncio.wait_for(fetch(session_id), timeout=self.timeout)
        except TimeoutError:
            log.debug("Timed out loading %s for session %s", what, session_id)
        except Exception as e:
            log.warning("Failed to load %s for session %s: %s", what, session_id, e)
        return None


class SearchExecutor:
    """Evaluates query trees for a single search call.

    Args:
        sessions: Corpus snapshot, read once per search.
        repository: Source of message lists and system prompts.
        token: Cancellation token checked before each batch and session.
        settings: Case folding, system-prompt scope, batching and timeouts.
    """

    def __init__(
        self,
        sessions: Sequence[ChatSession],
        repository: SessionRepository,
        token: CancellationToken,
        settings: SearchSettings | None = None,
    ) -> None:
        self.sessions = list(sessions)
        self.token = token
        self.settings = settings or SearchSettings()
        self.fetcher = SessionFetcher(repository, self.settings.fetch_timeout)

    async def execute(self, node: SearchNode) -> MatchResult:
        """Evaluate *node*; returns an empty result once cancelled."""
        result = await self._evaluate(node, title_only=False)
        if self.token.cancelled:
            return MatchResult.empty()
        return result

    async def _evaluate(self, node: SearchNode, *, title_only: bool) -> MatchResult:
        if self.token.cancelled:
            return MatchResult.empty()

        if node.type == NodeType.AND:
            return await self._evaluate_and(node.children, title_only=title_only)
        if node.type == NodeType.OR:
            return await self._evaluate_or(node.children, title_only=title_only)
        if node.type == NodeType.TITLE:
            return await self._evaluate(node.children[0], title_only=True)
        if node.type in (NodeType.WORD, NodeType.EXACT):
            if title_only:
                return self._match_titles(node.value or "")
            return await self._match_everywhere(node.value or "")
        raise ValueError(f"Unknown node type: {node.type}")

    async def _evaluate_and(self, children: list[SearchNode], *, title_only: bool) -> MatchResult:
        if not children:
            return MatchResult.empty()

        result = await self._evaluate(children[0], title_only=title_only)
        for child in children[1:]:
            # Terms of children after the short-circuit point are never reported.
            if not result.matched or not result.sessions:
                break
            child_result = await self._evaluate(child, title_only=title_only)
            if not child_result.matched:
                return MatchResult.empty()
            sessions = result.sessions & child_result.sessions
            result = MatchResult(
                matched=bool(sessions),
                sessions=sessions,
                matched_terms=_union_terms(result.matched_terms, child_result.matched_terms),
            )
        return result

    async def _evaluate_or(self, children: list[SearchNode], *, title_only: bool) -> MatchResult:
        result = MatchResult.empty()
        for child in children:
            child_result = await self._evaluate(child, title_only=title_only)
            if child_result.matched:
                result.matched = True
                result.sessions |= child_result.sessions
                result.matched_terms = _union_terms(
                    result.matched_terms, child_result.matched_terms
                )
        return result

    def _match_titles(self, term: str) -> MatchResult:
        if is_blank(term):
            return MatchResult.empty()

        case_sensitive = self.settings.case_sensitive
        needle = fold(term, case_sensitive)
        matches: set[str] = set()
        for session in self.sessions:
            if self.token.cancelled:
                return MatchResult.empty()
            if needle in fold(session.title, case_sensitive):
                matches.add(session.id)

        return self._leaf_result(term, matches)

    async def _match_everywhere(self, term: str) -> MatchResult:
        if is_blank(term):
            return MatchResult.empty()

        needle = fold(term, self.settings.case_sensitive)
        matches: set[str] = set()
        for batch in iter_batches(self.sessions, self.settings.batch_size):
            if self.token.cancelled:
                return MatchResult.empty()
            hits = await asyncio.gather(*(self._session_contains(s, needle) for s in batch))
            matches.update(session.id for session, hit in zip(batch, hits) if hit)

        if self.token.cancelled:
            return MatchResult.empty()
        return self._leaf_result(term, matches)

    async def _session_contains(self, session: ChatSession, needle: str) -> bool:
        if self.token.cancelled:
            return False

        case_sensitive = self.settings.case_sensitive
        if needle in fold(session.title, case_sensitive):
            return True

        messages = await self.fetcher.messages(session.id)
        if messages and any(needle in fold(m.text, case_sensitive) for m in messages):
            return True

        if self.settings.search_in_system_messages and not self.token.cancelled:
            prompt = await self.fetcher.system_prompt(session.id)
            if prompt is not None and needle in fold(prompt.text, case_sensitive):
                return True

        return False

    @staticmethod
    def _leaf_result(term: str, matches: set[str]) -> MatchResult:
        if not matches:
            return MatchResult.empty()
        return MatchResult(matched=True, sessions=matches, matched_terms=[term])
