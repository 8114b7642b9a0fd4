"""Session store access for chat search."""

from chat_search.store.builder import load_export, read_export
from chat_search.store.models import MessageRow, SessionRow, StoreBase, SystemPromptRow
from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData
from chat_search.store.repository import InMemorySessionRepository, SessionRepository
from chat_search.store.session import SqlSessionRepository, get_store_session

__all__ = [
    "ChatMessage",
    "ChatSession",
    "InMemorySessionRepository",
    "MessageRow",
    "SessionRepository",
    "SessionRow",
    "SqlSessionRepository",
    "StoreBase",
    "SystemPromptData",
    "SystemPromptRow",
    "get_store_session",
    "load_export",
    "read_export",
]
