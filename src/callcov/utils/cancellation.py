"""Cooperative cancellation shared between the CLI signal handlers and the walker."""

from __future__ import annotations

import threading
from typing import Callable, List, Optional


class CancellationToken:
    """A one-way flag. Once cancelled it stays cancelled.

    ``event`` may be any object with ``set``/``is_set``, such as a
    ``multiprocessing.Event`` shared with pool workers. Callbacks registered
    with ``add_callback`` run on cancellation; they may run more than once and
    must be idempotent.
    """

    def __init__(self, event=None) -> None:
        self._event = event if event is not None else threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
        for callback in list(self._callbacks):
            callback()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation, immediately if already cancelled."""
        self._callbacks.append(callback)
        if self._event.is_set():
            callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def __repr__(self) -> str:
        state = f"cancelled ({self.reason})" if self.is_cancelled else "active"
        return f"CancellationToken({state})"
