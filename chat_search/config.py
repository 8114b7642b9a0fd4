"""Configuration management for chat-search."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w

from chat_search.exceptions import (
    ConfigParseError,
    ConfigValidationError,
)
from chat_search.search.options import DEFAULT_BATCH_SIZE, DEFAULT_FETCH_TIMEOUT, SearchSettings

_MISSING = object()


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".config" / "chat-search" / "config.toml"


def get_default_store_path() -> Path:
    """Get the default session store path."""
    return Path.home() / ".local" / "share" / "chat-search" / "store.db"


@dataclass
class Config:
    """Application configuration.

    Attributes:
        store_db: Path to the SQLite session store.
        colored_output: Whether to use colored terminal output.
        case_sensitive: Match query terms without folding case.
        search_in_system_messages: Also search session system prompts.
        batch_size: Sessions searched concurrently per batch.
        fetch_timeout: Seconds allowed for loading one session's messages.
        left_context: Snippet display width kept before the first match.
        right_context: Snippet display width kept after the first match.
        max_length: Snippet display width when no term is visible.
        config_path: Path where config was loaded from (None if defaults).
    """

    store_db: Path = field(default_factory=get_default_store_path)
    colored_output: bool = True
    case_sensitive: bool = False
    search_in_system_messages: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    left_context: int = 16
    right_context: int = 40
    max_length: int = 56
    config_path: Path | None = None

    def validate(self) -> list[str]:
        """Validate configuration values.

        Returns:
            List of warning messages for non-fatal issues.

        Raises:
            ConfigValidationError: If a critical validation fails.
        """
        warnings: list[str] = []

        self.store_db = self.store_db.expanduser().resolve()
        if not self.store_db.exists():
            warnings.append(
                f"Session store not found: {self.store_db}. "
                f"Import sessions with: chat-search load EXPORT.json"
            )

        if self.batch_size < 1:
            raise ConfigValidationError("search.batch_size", self.batch_size, "must be at least 1")
        if self.fetch_timeout <= 0:
            raise ConfigValidationError(
                "search.fetch_timeout", self.fetch_timeout, "must be a positive number"
            )
        if self.batch_size > 256:
            warnings.append(f"search.batch_size={self.batch_size} is unusually large")

        for key in ("left_context", "right_context", "max_length"):
            if getattr(self, key) < 0:
                raise ConfigValidationError(f"highlight.{key}", getattr(self, key), "must be >= 0")

        return warnings

    def search_settings(self) -> SearchSettings:
        return SearchSettings(
            case_sensitive=self.case_sensitive,
            search_in_system_messages=self.search_in_system_messages,
            batch_size=self.batch_size,
            fetch_timeout=self.fetch_timeout,
        )

    def highlight_options(self) -> dict[str, Any]:
        """Keyword arguments for :class:`~chat_search.search.highlighter.Highlighter`."""
        return {
            "case_sensitive": self.case_sensitive,
            "max_context_length": self.max_length,
            "left_context_chars": self.left_context,
            "right_context_chars": self.right_context,
        }


def load_config(config_path: Path | None = None) -> tuple[Config, list[str]]:
    """Load configuration from file or use defaults.

    Args:
        config_path: Explicit config file path. If None, uses default location.

    Returns:
        Tuple of (Config object, list of warning messages).

    Raises:
        ConfigParseError: If config file exists but has invalid syntax.
        ConfigValidationError: If config values are invalid.
    """
    warnings: list[str] = []

    if config_path is None:
        config_path = get_default_config_path()

    config_path = config_path.expanduser().resolve()

    if not config_path.exists():
        config = Config()
        warnings.append(
            f"No config file found at {config_path}. Using defaults. "
            f"Create config with: chat-search init-config"
        )
        return config, warnings + config.validate()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(config_path, str(e)) from e

    config = _parse_config_dict(data, config_path)
    return config, warnings + config.validate()


def _get(data: dict[str, Any], section: str, key: str, kind: type | tuple[type, ...], what: str):
    value = data.get(section, {}).get(key, _MISSING)
    if value is _MISSING:
        return _MISSING
    # bool is an int subclass; never accept it for numeric settings
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise ConfigValidationError(f"{section}.{key}", value, f"must be {what}")
    if not isinstance(value, kind):
        raise ConfigValidationError(f"{section}.{key}", value, f"must be {what}")
    return value


def _parse_config_dict(data: dict[str, Any], config_path: Path) -> Config:
    """Parse configuration dictionary into Config object."""
    config = Config(config_path=config_path)

    for section in ("paths", "display", "search", "highlight"):
        if not isinstance(data.get(section, {}), dict):
            raise ConfigValidationError(section, data[section], "must be a table")

    value = _get(data, "paths", "store_db", str, "a string path")
    if value is not _MISSING:
        config.store_db = Path(value)

    value = _get(data, "display", "colored_output", bool, "a boolean")
    if value is not _MISSING:
        config.colored_output = value

    value = _get(data, "search", "case_sensitive", bool, "a boolean")
    if value is not _MISSING:
        config.case_sensitive = value

    value = _get(data, "search", "search_in_system_messages", bool, "a boolean")
    if value is not _MISSING:
        config.search_in_system_messages = value

    value = _get(data, "search", "batch_size", int, "an integer")
    if value is not _MISSING:
        config.batch_size = value

    value = _get(data, "search", "fetch_timeout", (int, float), "a number of seconds")
    if value is not _MISSING:
        config.fetch_timeout = float(value)

    for key in ("left_context", "right_context", "max_length"):
        value = _get(data, "highlight", key, int, "an integer")
        if value is not _MISSING:
            setattr(config, key, value)

    return config


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Path to save to. If None, uses config.config_path or default.
    """
    if config_path is None:
        config_path = config.config_path or get_default_config_path()

    config_path = config_path.expanduser().resolve()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {
        "paths": {
            "store_db": str(config.store_db),
        },
        "display": {
            "colored_output": config.colored_output,
        },
        "search": {
            "case_sensitive": config.case_sensitive,
            "search_in_system_messages": config.search_in_system_messages,
            "batch_size": config.batch_size,
            "fetch_timeout": config.fetch_timeout,
        },
        "highlight": {
            "left_context": config.left_context,
            "right_context": config.right_context,
            "max_length": config.max_length,
        },
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
