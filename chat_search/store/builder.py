"""Populate the session store from a JSON export."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete

from chat_search.exceptions import ValidationError
from chat_search.store.models import MessageRow, SessionRow, SystemPromptRow
from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.orm import Session

log = logging.getLogger(__name__)


def read_export(path: Path) -> dict[str, Any]:
    """Read an export file.

    Raises:
        ValidationError: If the file is not a JSON object with a
            ``sessions`` list.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError("export", str(path), f"not valid JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("sessions"), list):
        raise ValidationError("export", str(path), "expected an object with a 'sessions' list")
    return data


def iter_export_records(
    payload: dict[str, Any],
) -> Iterator[tuple[ChatSession, list[ChatMessage], SystemPromptData | None]]:
    """Validate and yield ``(session, messages, system_prompt)`` per entry.

    Raises:
        ValidationError: On the first malformed record.
    """
    for entry in payload.get("sessions", []):
        session = ChatSession.from_dict(entry)

        raw_messages = entry.get("messages") or []
        if not isinstance(raw_messages, list):
            raise ValidationError("session.messages", raw_messages, "must be a list")
        messages = [ChatMessage.from_dict(m) for m in raw_messages]

        raw_prompt = entry.get("systemPrompt", entry.get("system_prompt"))
        prompt = SystemPromptData.from_dict(raw_prompt) if raw_prompt is not None else None

        yield session, messages, prompt


def load_export(session: Session, payload: dict[str, Any], *, replace: bool = False) -> int:
    """Write all sessions of *payload* into the store.

    Existing sessions with the same id are overwritten together with their
    messages and system prompt.

    Args:
        session: SQLAlchemy session on the store.
        payload: Parsed export document.
        replace: Delete every stored session first.

    Returns:
        Number of sessions written.
    """
    records = list(iter_export_records(payload))

    if replace:
        session.execute(delete(SystemPromptRow))
        session.execute(delete(MessageRow))
        session.execute(delete(SessionRow))
        log.info("Cleared session store before import")

    start = session.query(SessionRow).count()
    for offset, (chat, messages, prompt) in enumerate(records):
        session.execute(delete(MessageRow).where(MessageRow.session_id == chat.id))
        session.execute(delete(SystemPromptRow).where(SystemPromptRow.session_id == chat.id))

        existing = session.get(SessionRow, chat.id)
        if existing is None:
            session.add(
                SessionRow(
                    id=chat.id,
                    title=chat.title,
                    last_update=chat.last_update,
                    model=chat.model,
                    position=start + offset,
                )
            )
        else:
            existing.title = chat.title
            existing.last_update = chat.last_update
            existing.model = chat.model
        session.flush()

        for position, message in enumerate(messages):
            session.add(MessageRow.from_record(chat.id, position, message))
        if prompt is not None:
            session.add(SystemPromptRow.from_record(chat.id, prompt))

        log.debug("Imported session %s with %d messages", chat.id, len(messages))

    session.commit()
    return len(records)
