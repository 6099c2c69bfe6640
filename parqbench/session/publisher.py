"""Single-writer, multi-reader cell holding the latest ViewState."""

from __future__ import annotations

import threading

from .types import ViewState


class ViewStatePublisher:
    """Holds one immutable ViewState, replaced wholesale on every publish.

    Readers get the object reference under the lock, so they always see a snapshot
    that was published as a whole.
    """

    def __init__(self, initial: ViewState | None = None) -> None:
        self._lock = threading.Lock()
        self._state = initial or ViewState()

    def publish(self, state: ViewState) -> None:
        with self._lock:
            self._state = state

    def snapshot(self) -> ViewState:
        with self._lock:
            return self._state
