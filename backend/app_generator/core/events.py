"""
In-process publish/subscribe used by every client and manager.

Each component owns an ``EventBus``. The orchestrator relays component buses
into the UI bus with a prefix, e.g. ``repo:push:success`` emitted by the
uploader reaches UI subscribers as ``github:repo:push:success``.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EventPayload = Dict[str, Any]
EventHandler = Callable[[EventPayload], Any]
AnyEventHandler = Callable[[str, EventPayload], Any]


class EventBus:
    """Named-event publisher with isolated subscribers."""

    def __init__(self, name: str = ""):
        self.name = name
        self._listeners: Dict[str, List[EventHandler]] = defaultdict(list)
        self._any_listeners: List[AnyEventHandler] = []

    def on(self, event: str, handler: EventHandler) -> None:
        self._listeners[event].append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def on_any(self, handler: AnyEventHandler) -> None:
        """Subscribe to every event; the handler receives (event, payload)."""
        self._any_listeners.append(handler)

    def off_any(self, handler: AnyEventHandler) -> None:
        if handler in self._any_listeners:
            self._any_listeners.remove(handler)

    def emit(self, event: str, payload: Optional[EventPayload] = None) -> None:
        """
        Deliver an event to its subscribers.

        A failing subscriber is logged and skipped; the publisher never sees
        the exception.
        """
        data = payload if payload is not None else {}

        for handler in list(self._listeners.get(event, [])):
            try:
                handler(data)
            except Exception:
                logger.exception(f"Event handler for '{self._qualified(event)}' failed")

        for handler in list(self._any_listeners):
            try:
                handler(event, data)
            except Exception:
                logger.exception(f"Wildcard handler for '{self._qualified(event)}' failed")

    def relay_to(self, target: "EventBus", prefix: str) -> None:
        """Forward every event of this bus to ``target`` as ``prefix:event``."""

        def _forward(event: str, payload: EventPayload) -> None:
            target.emit(f"{prefix}:{event}", payload)

        self.on_any(_forward)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def _qualified(self, event: str) -> str:
        return f"{self.name}:{event}" if self.name else event
