from __future__ import annotations

from typing import Optional


class CancellationToken:
    """Liveness flag handed to every asynchronous continuation.

    Operations already in flight are never interrupted; instead each write
    site checks `cancelled` and drops its result. A child token reports
    cancelled as soon as its parent is, so stopping the engine invalidates
    every per-job token at once.
    """

    __slots__ = ("_cancelled", "_parent", "reason")

    def __init__(self, parent: Optional[CancellationToken] = None) -> None:
        self._cancelled = False
        self._parent = parent
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    def child(self) -> CancellationToken:
        return CancellationToken(parent=self)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"CancellationToken(cancelled={self.cancelled}, reason={self.reason!r})"
