"""Shared pytest fixtures."""

from __future__ import annotations

import json
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData
from chat_search.store.repository import InMemorySessionRepository

if TYPE_CHECKING:
    from collections.abc import Generator

    from chat_search.config import Config


def make_message(message_id: str, content: str, role: str = "user") -> ChatMessage:
    return ChatMessage(id=message_id, role=role, content=content, date="2024-05-01")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    path = Path(tempfile.mkdtemp())
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def sample_config(temp_dir: Path) -> Path:
    """Create a sample config file."""
    config_path = temp_dir / "config.toml"
    config_path.write_text(f"""[paths]
store_db = "{temp_dir / 'store.db'}"

[display]
colored_output = false

[search]
case_sensitive = false
batch_size = 4
fetch_timeout = 1.5

[highlight]
left_context = 10
""")
    return config_path


@pytest.fixture
def sample_repository() -> InMemorySessionRepository:
    """Two sessions that both mention Paris in different places.

    S1 has it in the title, S2 in a message. S1 was updated more recently.
    """
    repo = InMemorySessionRepository()
    repo.add_session(
        ChatSession(id="S1", title="Trip to Paris", last_update=2000),
        [make_message("m1", "loved the Eiffel Tower")],
    )
    repo.add_session(
        ChatSession(id="S2", title="Notes", last_update=1000),
        [make_message("m2", "Paris Agreement review")],
    )
    return repo


@pytest.fixture
def sample_export() -> dict[str, Any]:
    """Export document matching ``sample_repository`` plus a system prompt."""
    return {
        "sessions": [
            {
                "id": "S1",
                "title": "Trip to Paris",
                "lastUpdate": 2000,
                "messages": [
                    {"id": "m1", "role": "user", "content": "loved the Eiffel Tower", "date": ""}
                ],
            },
            {
                "id": "S2",
                "title": "Notes",
                "lastUpdate": 1000,
                "messages": [
                    {
                        "id": "m2",
                        "role": "user",
                        "content": [{"type": "text", "text": "Paris Agreement review"}],
                        "date": "",
                    }
                ],
                "systemPrompt": {"text": "You summarise climate policy", "images": []},
            },
        ]
    }


@pytest.fixture
def sample_export_file(temp_dir: Path, sample_export: dict[str, Any]) -> Path:
    path = temp_dir / "export.json"
    path.write_text(json.dumps(sample_export), encoding="utf-8")
    return path


@pytest.fixture
def mock_config(temp_dir: Path) -> Config:
    """Create a Config object pointing at a store in the temp dir."""
    from chat_search.config import Config

    return Config(store_db=temp_dir / "store.db", colored_output=False)


@pytest.fixture
def system_prompt() -> SystemPromptData:
    return SystemPromptData(text="You are a travel planner for Paris trips")
