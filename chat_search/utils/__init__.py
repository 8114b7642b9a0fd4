"""Utility modules for chat-search."""

from chat_search.utils.fileops import secure_mkdir
from chat_search.utils.output import (
    console,
    error,
    info,
    segments_to_text,
    success,
    warning,
)

__all__ = [
    "console",
    "error",
    "info",
    "secure_mkdir",
    "segments_to_text",
    "success",
    "warning",
]
