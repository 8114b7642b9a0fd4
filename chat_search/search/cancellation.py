"""Cooperative cancellation for in-flight searches."""

from __future__ import annotations


class CancellationToken:
    """Flag checked by the engine at every per-session unit of work.

    Cancelling never raises inside the engine; evaluation unwinds and the
    search resolves to an empty result. A token may be linked to a
    *parent* (for example a caller-supplied signal) and then also reports
    cancelled once the parent is.
    """

    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._cancelled = False
        self._parent = parent

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._parent is not None and self._parent.cancelled

    def __repr__(self) -> str:
        return f"<CancellationToken(cancelled={self.cancelled})>"
