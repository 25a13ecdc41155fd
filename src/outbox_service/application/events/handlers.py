from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from outbox_service.domain.events.integration_event import IntegrationEvent

E = TypeVar("E", bound=IntegrationEvent)

EventHandler = Callable[[Any, asyncio.Event], Coroutine[Any, Any, None]]


def handler_name(handler: EventHandler) -> str:
    name = getattr(handler, "__qualname__", None) or type(handler).__qualname__
    module = getattr(handler, "__module__", None)
    return f"{module}.{name}" if module else name


class HandlerRegistry:
    """Ordered subscribers per event shape.

    Lookup is by exact class; a handler subscribed to a base event does not
    receive subclasses.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[type[IntegrationEvent], list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_cls: type[IntegrationEvent], handler: EventHandler) -> None:
        if not callable(handler):
            raise TypeError(f"{handler!r} is not callable")
        self._handlers[event_cls].append(handler)

    def on(self, event_cls: type[E]) -> Callable[[EventHandler], EventHandler]:
        def decorator(handler: EventHandler) -> EventHandler:
            self.subscribe(event_cls, handler)
            return handler

        return decorator

    def handlers_for(self, event_cls: type[IntegrationEvent]) -> list[EventHandler]:
        return list(self._handlers.get(event_cls, ()))
