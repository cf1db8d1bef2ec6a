"""Minimal synchronous event bus.

Handlers are called in subscription order, on the emitting thread, before
:meth:`EventBus.emit` returns. A handler that raises stops the emit and the
exception reaches the emitter.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class EventBus:
    """Named events with any number of handlers each."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> Unsubscribe:
        """Subscribe *handler* to *event* and return a function that unsubscribes it."""
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event, [])
            for index, existing in enumerate(handlers):
                if existing is handler:
                    del handlers[index]
                    return

        return unsubscribe

    def emit(self, event: str, payload: Any = None) -> None:
        """Call every handler of *event* with *payload*."""
        handlers = tuple(self._handlers.get(event, ()))
        logger.debug("Emitting '%s' to %d handler(s)", event, len(handlers))
        for handler in handlers:
            handler(payload)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))
