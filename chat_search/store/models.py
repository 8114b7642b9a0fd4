"""SQLAlchemy ORM models for the local session store."""

from __future__ import annotations

import json

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData


class StoreBase(DeclarativeBase):
    """Base class for store ORM models."""

    pass


class SessionRow(StoreBase):
    """One chat session."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(Text, default="", server_default="")
    last_update: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    model: Mapped[str | None] = mapped_column(String(128))
    # Order of the session in the source list; the snapshot preserves it.
    position: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    __table_args__ = (Index("ix_sessions_position", "position"),)

    def to_record(self) -> ChatSession:
        return ChatSession(
            id=self.id, title=self.title or "", last_update=self.last_update, model=self.model
        )

    def __repr__(self) -> str:
        return f"<SessionRow(id='{self.id}', title='{(self.title or '')[:30]}')>"


class MessageRow(StoreBase):
    """A message belonging to a session.

    Multimodal content is stored as a JSON array in ``content_parts``;
    plain-text messages leave it NULL and use ``content``.
    """

    __tablename__ = "messages"

    session_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True
    )
    # Order within the session; message ids are not required to be unique.
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    id: Mapped[str] = mapped_column(String(128), default="")
    role: Mapped[str] = mapped_column(String(32), default="user")
    content: Mapped[str] = mapped_column(Text, default="")
    content_parts: Mapped[str | None] = mapped_column(Text)
    date: Mapped[str] = mapped_column(String(64), default="")
    model: Mapped[str | None] = mapped_column(String(128))

    @classmethod
    def from_record(cls, session_id: str, position: int, message: ChatMessage) -> MessageRow:
        if isinstance(message.content, str):
            content, parts = message.content, None
        else:
            content, parts = message.text, json.dumps(list(message.content), ensure_ascii=False)
        return cls(
            session_id=session_id,
            id=message.id,
            position=position,
            role=message.role,
            content=content,
            content_parts=parts,
            date=message.date,
            model=message.model,
        )

    def to_record(self) -> ChatMessage:
        content: str | tuple = self.content or ""
        if self.content_parts is not None:
            content = tuple(json.loads(self.content_parts))
        return ChatMessage(
            id=self.id, role=self.role, content=content, date=self.date or "", model=self.model
        )

    def __repr__(self) -> str:
        return f"<MessageRow(session_id='{self.session_id}', position={self.position})>"


class SystemPromptRow(StoreBase):
    """System prompt stored apart from the session's messages."""

    __tablename__ = "system_prompts"

    session_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True
    )
    text: Mapped[str] = mapped_column(Text, default="")
    images: Mapped[str] = mapped_column(Text, default="[]")
    update_at: Mapped[int] = mapped_column(BigInteger, default=0)

    @classmethod
    def from_record(cls, session_id: str, prompt: SystemPromptData) -> SystemPromptRow:
        return cls(
            session_id=session_id,
            text=prompt.text,
            images=json.dumps(list(prompt.images)),
            update_at=prompt.update_at,
        )

    def to_record(self) -> SystemPromptData:
        return SystemPromptData(
            text=self.text or "",
            images=tuple(json.loads(self.images or "[]")),
            update_at=self.update_at or 0,
        )

    def __repr__(self) -> str:
        return f"<SystemPromptRow(session_id='{self.session_id}')>"
