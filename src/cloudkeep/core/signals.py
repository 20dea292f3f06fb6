"""Minimal in-process signal bus with disposer-based unsubscription."""

from __future__ import annotations

import logging
import threading
from typing import Callable

log = logging.getLogger(__name__)

Disposer = Callable[[], None]


class SignalBus:
    """Named signals with exactly-once registration per handler.

    ``on()`` returns a disposer; calling it more than once is harmless.
    A handler that raises is logged and the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable]] = {}
        self._lock = threading.Lock()

    def on(self, signal: str, handler: Callable) -> Disposer:
        """Register handler for signal. Returns a disposer."""
        with self._lock:
            handlers = self._handlers.setdefault(signal, [])
            if handler not in handlers:
                handlers.append(handler)

        disposed = False

        def dispose() -> None:
            nonlocal disposed
            if disposed:
                return
            disposed = True
            self._remove(signal, handler)

        return dispose

    def _remove(self, signal: str, handler: Callable) -> None:
        with self._lock:
            handlers = self._handlers.get(signal, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(signal, None)

    def emit(self, signal: str, *args) -> int:
        """Deliver args to every handler of signal. Returns the handler count."""
        with self._lock:
            handlers = list(self._handlers.get(signal, []))

        for handler in handlers:
            try:
                handler(*args)
            except Exception:
                log.warning("Handler for %s failed", signal, exc_info=True)
        return len(handlers)

    def handler_count(self, signal: str) -> int:
        with self._lock:
            return len(self._handlers.get(signal, []))
