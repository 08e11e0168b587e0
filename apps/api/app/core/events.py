from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


logger = logging.getLogger("app.events")


@dataclass(frozen=True)
class InternalEvent:
    name: str
    payload: dict[str, Any]


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    """Synchronous fan-out to handlers registered per event name.

    Handlers run in subscription order on the publisher's call stack, so a
    failing handler propagates to the publisher. Subscribing the same handler
    twice for one event is a no-op; app startup may run more than once per
    process under test clients.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._subscribers[event_name]
        if handler not in handlers:
            handlers.append(handler)

    def handlers_for(self, event_name: str) -> tuple[EventHandler, ...]:
        return tuple(self._subscribers.get(event_name, ()))

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        event = InternalEvent(name=event_name, payload=payload)
        handlers = self.handlers_for(event_name)
        logger.debug("event.dispatch", extra={"event_type": event_name})
        for handler in handlers:
            handler(event)


event_bus = InProcessEventBus()
