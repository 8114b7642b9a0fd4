"""Exception hierarchy for chat-search."""

from pathlib import Path


class ChatSearchError(Exception):
    """Base exception for all chat-search errors.

    All exceptions in this package inherit from this class,
    allowing callers to catch all chat-search errors with
    a single except clause.
    """

    pass


# Configuration Errors
class ConfigError(ChatSearchError):
    """Configuration-related errors."""

    pass


class ConfigParseError(ConfigError):
    """Configuration file has invalid syntax."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Invalid config at {path}: {detail}")


class ConfigValidationError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: object, reason: str) -> None:
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid config value for '{key}': {reason}")


# Store Errors
class StoreError(ChatSearchError):
    """Session store errors."""

    pass


class StoreNotFoundError(StoreError):
    """Store database file doesn't exist."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Session store not found: {path}")


class SchemaVersionError(StoreError):
    """Store schema is incompatible."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Incompatible store schema: {detail}")


class StoreConnectionError(StoreError):
    """Failed to connect to the store."""

    pass


# Entity Not Found Errors
class NotFoundError(ChatSearchError):
    """Requested entity not found."""

    pass


class SessionNotFoundError(NotFoundError):
    """Chat session doesn't exist."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


# Validation Errors
class ValidationError(ChatSearchError):
    """Invalid input value."""

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Query Errors
class SearchParseError(ChatSearchError):
    """Raised when a search query cannot be compiled.

    Attributes:
        message: Human-readable description of the problem.
        position: Character offset in the normalized query.
        suggestion: Hint on how to fix the query (may be empty).
    """

    def __init__(self, message: str, position: int = 0, suggestion: str = "") -> None:
        self.message = message
        self.position = position
        self.suggestion = suggestion
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "position": self.position,
            "suggestion": self.suggestion,
        }
