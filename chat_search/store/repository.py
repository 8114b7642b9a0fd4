"""Read-only repository interface the search engine evaluates against."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from chat_search.exceptions import SessionNotFoundError
from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData


@runtime_checkable
class SessionRepository(Protocol):
    """Narrow, asynchronous view of a chat session store.

    The search engine never writes through this interface.
    """

    async def list_sessions(self) -> list[ChatSession]:
        """Return the current session snapshot."""
        ...

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        """Return all messages of *session_id* in conversation order."""
        ...

    async def get_system_prompt(self, session_id: str) -> SystemPromptData | None:
        """Return the system prompt of *session_id*, or None if it has none."""
        ...


class InMemorySessionRepository:
    """Repository over records held in memory.

    Useful for embedding callers that already hold their sessions, and for
    tests.
    """

    def __init__(
        self,
        sessions: Iterable[ChatSession] = (),
        messages: dict[str, list[ChatMessage]] | None = None,
        system_prompts: dict[str, SystemPromptData] | None = None,
    ) -> None:
        self._sessions = list(sessions)
        self._messages = dict(messages or {})
        self._system_prompts = dict(system_prompts or {})

    def add_session(
        self,
        session: ChatSession,
        messages: Iterable[ChatMessage] = (),
        system_prompt: SystemPromptData | None = None,
    ) -> None:
        self._sessions.append(session)
        self._messages[session.id] = list(messages)
        if system_prompt is not None:
            self._system_prompts[session.id] = system_prompt

    async def list_sessions(self) -> list[ChatSession]:
        return list(self._sessions)

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        if session_id not in self._messages and not self._has_session(session_id):
            raise SessionNotFoundError(session_id)
        return list(self._messages.get(session_id, []))

    async def get_system_prompt(self, session_id: str) -> SystemPromptData | None:
        return self._system_prompts.get(session_id)

    def _has_session(self, session_id: str) -> bool:
        return any(s.id == session_id for s in self._sessions)
