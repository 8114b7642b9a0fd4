"""Engine tunables and per-call search options."""

from __future__ import annotations

from dataclasses import dataclass, replace

from chat_search.search.cancellation import CancellationToken

DEFAULT_BATCH_SIZE = 8
DEFAULT_FETCH_TIMEOUT = 2.0


@dataclass(frozen=True)
class SearchSettings:
    """Settings shared by the executor and result builder.

    Attributes:
        case_sensitive: Compare terms without folding case.
        search_in_system_messages: Also look into each session's system prompt.
        batch_size: Sessions evaluated concurrently per batch.
        fetch_timeout: Seconds allowed for a single repository fetch.
    """

    case_sensitive: bool = False
    search_in_system_messages: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be positive, got {self.fetch_timeout}")


@dataclass(frozen=True)
class SearchOptions:
    """Per-call overrides for :meth:`SearchService.search`.

    ``None`` fields fall back to the service's :class:`SearchSettings`.
    ``signal`` is an optional caller-owned token; cancelling it aborts the
    search just like a newer search or ``cancel_current_search()`` would.
    """

    case_sensitive: bool | None = None
    search_in_system_messages: bool | None = None
    signal: CancellationToken | None = None

    def apply(self, settings: SearchSettings) -> SearchSettings:
        overrides = {}
        if self.case_sensitive is not None:
            overrides["case_sensitive"] = self.case_sensitive
        if self.search_in_system_messages is not None:
            overrides["search_in_system_messages"] = self.search_in_system_messages
        return replace(settings, **overrides) if overrides else settings
