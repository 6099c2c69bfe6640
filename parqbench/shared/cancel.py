"""Cooperative cancellation tokens for background tasks."""

from __future__ import annotations

import threading
from typing import Callable

from .exceptions import CancelledError
from .logging import Logger, get_logger


class CancelToken:
    """Shared flag checked by a running task at safe points.

    Cancelling never interrupts a thread. Callbacks registered with ``on_cancel`` let
    an operation forward the signal to a library that exposes its own interrupt hook.
    A failing callback is logged and never propagates to the caller of ``cancel``.
    """

    def __init__(self, logger: Logger | None = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._logger = logger or get_logger()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            self._invoke(callback)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError("Operation cancelled.")

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation (immediately if already cancelled).

        Returns a function that unregisters the callback.
        """

        with self._lock:
            registered = not self._event.is_set()
            if registered:
                self._callbacks.append(callback)
        if not registered:
            self._invoke(callback)

        def _unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return _unregister

    def _invoke(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as exc:
            self._logger.warning(f"Cancel callback {callback!r} failed: {exc!r}")

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled})"
