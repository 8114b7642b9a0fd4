"""Typed records exchanged across the session-store boundary.

Sessions, messages and system prompts arrive from external storage as
loosely-shaped mappings. ``from_dict`` validates them on ingestion so the
search engine only ever sees well-formed records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from chat_search.exceptions import ValidationError


def _require_str(data: dict[str, Any], key: str, *, record: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValidationError(f"{record}.{key}", value, "must be a string")
    return value


def _optional_str(data: dict[str, Any], key: str, *, record: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{record}.{key}", value, "must be a string or null")
    return value


def _timestamp(data: dict[str, Any], *keys: str, record: str) -> int:
    for key in keys:
        if key in data:
            value = data[key]
            # bool is an int subclass; reject it explicitly
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{record}.{key}", value, "must be a number")
            return int(value)
    return 0


@dataclass(frozen=True)
class ChatSession:
    """Snapshot entry for one chat session.

    Attributes:
        id: Stable session identifier.
        title: Session title (topic) shown in the session list.
        last_update: Last modification time in epoch milliseconds.
        model: Model name the session was last used with, if known.
    """

    id: str
    title: str
    last_update: int = 0
    model: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatSession:
        if not isinstance(data, dict):
            raise ValidationError("session", data, "must be an object")
        return cls(
            id=_require_str(data, "id", record="session"),
            title=_optional_str(data, "title", record="session") or "",
            last_update=_timestamp(data, "lastUpdate", "last_update", record="session"),
            model=_optional_str(data, "model", record="session"),
        )


@dataclass(frozen=True)
class ChatMessage:
    """A single message of a chat session.

    ``content`` is either plain text or a list of multimodal parts
    (``{"type": "text", "text": ...}`` / ``{"type": "image_url", ...}``).
    """

    id: str
    role: str
    content: str | tuple[dict[str, Any], ...] = ""
    date: str = ""
    model: str | None = None

    @property
    def text(self) -> str:
        """Text content with image parts dropped."""
        if isinstance(self.content, str):
            return self.content
        parts = [part.get("text") or "" for part in self.content if part.get("type") == "text"]
        return " ".join(parts).strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        if not isinstance(data, dict):
            raise ValidationError("message", data, "must be an object")

        content = data.get("content", "")
        if isinstance(content, list):
            for part in content:
                if not isinstance(part, dict) or not isinstance(part.get("type"), str):
                    raise ValidationError(
                        "message.content", part, "parts must be objects with a 'type'"
                    )
            content = tuple(content)
        elif content is None:
            content = ""
        elif not isinstance(content, str):
            raise ValidationError("message.content", content, "must be a string or a list")

        return cls(
            id=_require_str(data, "id", record="message"),
            role=_optional_str(data, "role", record="message") or "user",
            content=content,
            date=_optional_str(data, "date", record="message") or "",
            model=_optional_str(data, "model", record="message"),
        )

    def to_dict(self) -> dict[str, Any]:
        content: Any = self.content
        if not isinstance(content, str):
            content = list(content)
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": content,
            "date": self.date,
        }
        if self.model is not None:
            data["model"] = self.model
        return data


@dataclass(frozen=True)
class SystemPromptData:
    """System prompt stored separately from a session's messages."""

    text: str = ""
    images: tuple[str, ...] = field(default_factory=tuple)
    update_at: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SystemPromptData:
        if not isinstance(data, dict):
            raise ValidationError("system_prompt", data, "must be an object")
        images = data.get("images") or []
        if not isinstance(images, list) or not all(isinstance(i, str) for i in images):
            raise ValidationError("system_prompt.images", images, "must be a list of strings")
        return cls(
            text=_optional_str(data, "text", record="system_prompt") or "",
            images=tuple(images),
            update_at=_timestamp(data, "updateAt", "update_at", record="system_prompt"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "images": list(self.images), "updateAt": self.update_at}
