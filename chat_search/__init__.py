"""chat-search: boolean search over stored chat sessions."""

__version__ = "0.3.0"
