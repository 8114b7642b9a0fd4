"""Turn matched session ids into classified search results."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from chat_search.search.cancellation import CancellationToken
from chat_search.search.executor import MatchResult, SessionFetcher, iter_batches
from chat_search.search.options import SearchSettings
from chat_search.search.text import find_matched_terms
from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData
from chat_search.store.repository import SessionRepository

log = logging.getLogger(__name__)

MatchType = Literal["title", "message", "system", "multiple"]

FIELD_TITLE = "title"
FIELD_MESSAGE = "message"
FIELD_SYSTEM = "system"


@dataclass
class SearchResult:
    """One session that matched, with the evidence for display."""

    session_id: str
    topic: str
    last_update: int
    match_type: MatchType
    matched_terms: list[str] = field(default_factory=list)
    matched_messages: list[ChatMessage] = field(default_factory=list)
    matched_system_message: SystemPromptData | None = None
    # Categories that actually contained a term, in title/message/system order.
    matched_fields: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "topic": self.topic,
            "lastUpdate": self.last_update,
            "matchType": self.match_type,
            "matchedTerms": list(self.matched_terms),
            "matchedMessages": [m.to_dict() for m in self.matched_messages],
            "matchedSystemMessage": (
                self.matched_system_message.to_dict()
                if self.matched_system_message is not None
                else None
            ),
        }


def classify_match(fields: Sequence[str]) -> MatchType:
    """``multiple`` when more than one category hit, else that category."""
    if len(fields) > 1:
        return "multiple"
    return fields[0]  # type: ignore[return-value]


class ResultBuilder:
    """Re-scans matched sessions to find where each candidate term occurs."""

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

    async def build(self, match: MatchResult, candidate_terms: list[str]) -> list[SearchResult]:
        """Build results sorted by ``last_update`` descending.

        Ties keep snapshot order. Returns an empty list once cancelled.
        """
        if not match.matched or not match.sessions:
            return []

        targets = [s for s in self.sessions if s.id in match.sessions]
        results: list[SearchResult] = []
        for batch in iter_batches(targets, self.settings.batch_size):
            if self.token.cancelled:
                return []
            built = await asyncio.gather(*(self._build_one(s, candidate_terms) for s in batch))
            results.extend(r for r in built if r is not None)

        if self.token.cancelled:
            return []

        results.sort(key=lambda r: r.last_update, reverse=True)
        return results

    async def _build_one(self, session: ChatSession, terms: list[str]) -> SearchResult | None:
        if self.token.cancelled:
            return None

        case_sensitive = self.settings.case_sensitive
        found: set[str] = set()
        fields: list[str] = []

        title_terms = find_matched_terms(session.title, terms, case_sensitive)
        if title_terms:
            found.update(title_terms)
            fields.append(FIELD_TITLE)

        matched_messages: list[ChatMessage] = []
        for message in await self.fetcher.messages(session.id) or []:
            message_terms = find_matched_terms(message.text, terms, case_sensitive)
            if message_terms:
                found.update(message_terms)
                matched_messages.append(message)
        if matched_messages:
            fields.append(FIELD_MESSAGE)

        matched_prompt: SystemPromptData | None = None
        if self.settings.search_in_system_messages:
            prompt = await self.fetcher.system_prompt(session.id)
            if prompt is not None and prompt.text:
                prompt_terms = find_matched_terms(prompt.text, terms, case_sensitive)
                if prompt_terms:
                    found.update(prompt_terms)
                    matched_prompt = prompt
                    fields.append(FIELD_SYSTEM)

        if not fields:
            log.debug("Session %s matched but no field contains a term", session.id)
            return None

        return SearchResult(
            session_id=session.id,
            topic=session.title,
            last_update=session.last_update,
            match_type=classify_match(fields),
            matched_terms=[t for t in terms if t in found],
            matched_messages=matched_messages,
            matched_system_message=matched_prompt,
            matched_fields=tuple(fields),
        )
