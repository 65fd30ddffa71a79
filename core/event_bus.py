"""In-process change notifications between registries and persistence."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("desktop.events")

EventHandler = Callable[[dict[str, Any]], None]
Unsubscribe = Callable[[], None]

WINDOWS_CHANGED = "windows.changed"
DESKTOP_CHANGED = "desktop.changed"


class EventBus:
    """Synchronous fan-out of state-change events, keyed by event name.

    Handlers run in subscription order on the emitting call stack. A handler
    that subscribes or unsubscribes while an event is being delivered only
    affects later emissions.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> Unsubscribe:
        """Register ``handler`` and return a callable that removes it again."""
        self._handlers[event_name].append(handler)
        return lambda: self.unsubscribe(event_name, handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            logger.debug("No subscribers for %s", event_name)
        for handler in handlers:
            handler(payload)
