"""Session store database access."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import sqlalchemy.engine
from sqlalchemy import create_engine, event, select, text
from sqlalchemy.exc import DatabaseError
from sqlalchemy.orm import Session, sessionmaker

from chat_search.exceptions import (
    SchemaVersionError,
    StoreConnectionError,
    StoreNotFoundError,
)
from chat_search.store.models import MessageRow, SessionRow, StoreBase, SystemPromptRow
from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData

log = logging.getLogger(__name__)

# Required tables for schema validation
REQUIRED_TABLES = {"sessions", "messages", "system_prompts"}


def get_store_engine(db_path: Path) -> sqlalchemy.engine.Engine:
    """Create SQLAlchemy engine for the session store.

    Args:
        db_path: Path to the store SQLite file.

    Returns:
        SQLAlchemy engine usable from worker threads.
    """
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={
            "timeout": 30,
            "check_same_thread": False,
        },
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def validate_schema(session: Session) -> None:
    """Validate that the database has the expected store schema.

    Raises:
        SchemaVersionError: If required tables are missing.
    """
    result = session.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))
    existing_tables = {row[0] for row in result}

    missing = REQUIRED_TABLES - existing_tables
    if missing:
        raise SchemaVersionError(
            f"Missing required tables: {', '.join(sorted(missing))}. "
            f"Is this a chat-search store?"
        )


@contextmanager
def get_store_session(db_path: Path, *, create: bool = False) -> Generator[Session, None, None]:
    """Create a session for the store database.

    Commits on success, rolls back on error, and always closes.

    Args:
        db_path: Path to the store SQLite file.
        create: Create the file and tables if missing. Otherwise a missing
            file raises StoreNotFoundError.

    Raises:
        StoreNotFoundError: If the file doesn't exist and *create* is False.
        SchemaVersionError: If the schema is incompatible.
        StoreConnectionError: If the file can't be opened as a database.
    """
    db_path = db_path.expanduser().resolve()
    if not create and not db_path.exists():
        raise StoreNotFoundError(db_path)
    if create:
        db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = get_store_engine(db_path)
    try:
        if create:
            StoreBase.metadata.create_all(engine)
    except DatabaseError as e:
        engine.dispose()
        raise StoreConnectionError(f"Failed to open store {db_path}: {e}") from e

    session_factory = sessionmaker(bind=engine)
    session = session_factory()

    try:
        validate_schema(session)
        yield session
        session.commit()
    except DatabaseError as e:
        session.rollback()
        msg = str(e).lower()
        if "malformed" in msg or "corrupt" in msg or "not a database" in msg:
            log.warning("Session store appears corrupt: %s", db_path)
        raise StoreConnectionError(f"Store error in {db_path}: {e}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        engine.dispose()


class SqlSessionRepository:
    """SessionRepository backed by the SQLite session store.

    Queries are blocking, so each runs in a worker thread via
    :func:`asyncio.to_thread` to keep the event loop responsive.
    """

    def __init__(self, db_path: Path) -> None:
        db_path = db_path.expanduser().resolve()
        if not db_path.exists():
            raise StoreNotFoundError(db_path)
        self.db_path = db_path
        self._engine = get_store_engine(db_path)
        self._session_factory = sessionmaker(bind=self._engine)

        try:
            with self._session_factory() as session:
                validate_schema(session)
        except DatabaseError as e:
            self._engine.dispose()
            raise StoreConnectionError(f"Failed to open store {db_path}: {e}") from e
        except SchemaVersionError:
            self._engine.dispose()
            raise

    def close(self) -> None:
        self._engine.dispose()

    async def list_sessions(self) -> list[ChatSession]:
        return await asyncio.to_thread(self._list_sessions)

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        return await asyncio.to_thread(self._get_messages, session_id)

    async def get_system_prompt(self, session_id: str) -> SystemPromptData | None:
        return await asyncio.to_thread(self._get_system_prompt, session_id)

    def _list_sessions(self) -> list[ChatSession]:
        with self._session_factory() as session:
            rows = session.scalars(select(SessionRow).order_by(SessionRow.position)).all()
            return [row.to_record() for row in rows]

    def _get_messages(self, session_id: str) -> list[ChatMessage]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(MessageRow)
                .where(MessageRow.session_id == session_id)
                .order_by(MessageRow.position)
            ).all()
            return [row.to_record() for row in rows]

    def _get_system_prompt(self, session_id: str) -> SystemPromptData | None:
        with self._session_factory() as session:
            row = session.get(SystemPromptRow, session_id)
            return row.to_record() if row is not None else None
