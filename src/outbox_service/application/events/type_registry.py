"""Static registry mapping stored event type names to integration event shapes.

Event-owning modules register their shapes at process start. Stored names
are resolved in three steps, first match wins:

1. exact match on a registered name or legacy alias;
2. exact match after stripping qualifier metadata (everything after the
   first ``,``), as written by producers that stored assembly-qualified names;
3. bare-name search on the last ``.`` segment. One candidate wins outright;
   several candidates are narrowed to the one whose full name equals the
   stripped string, otherwise the name is ambiguous.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import pydantic
from pydantic import TypeAdapter

from outbox_service.application.exceptions import (
    EventDeserializationError,
    EventResolutionError,
)
from outbox_service.domain.events.integration_event import IntegrationEvent

QUALIFIER_SEPARATOR = ","
NAMESPACE_SEPARATOR = "."

E = TypeVar("E", bound=IntegrationEvent)


def default_type_name(event_cls: type) -> str:
    return f"{event_cls.__module__}.{event_cls.__qualname__}"


def _bare_name(name: str) -> str:
    return name.rsplit(NAMESPACE_SEPARATOR, 1)[-1]


def _describe_validation_error(exc: pydantic.ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


class EventTypeRegistry:
    def __init__(self) -> None:
        self._by_name: dict[str, type[IntegrationEvent]] = {}
        self._aliases: dict[str, type[IntegrationEvent]] = {}
        self._names: dict[type[IntegrationEvent], str] = {}
        self._adapters: dict[type[IntegrationEvent], TypeAdapter[Any]] = {}

    def register(
        self,
        event_cls: type[E],
        *,
        name: str | None = None,
        aliases: Iterable[str] = (),
    ) -> type[E]:
        if not (isinstance(event_cls, type) and issubclass(event_cls, IntegrationEvent)):
            raise TypeError(f"{event_cls!r} is not an IntegrationEvent subclass")

        full_name = name or default_type_name(event_cls)
        aliases = tuple(aliases)
        current = self._names.get(event_cls)
        if current is not None and current != full_name:
            raise ValueError(f"{event_cls.__qualname__} is already registered as '{current}'")
        for key in (full_name, *aliases):
            owner = self._lookup(key)
            if owner is not None and owner is not event_cls:
                raise ValueError(f"Event type name '{key}' is already taken by {owner.__qualname__}")

        self._by_name[full_name] = event_cls
        self._names[event_cls] = full_name
        for alias in aliases:
            self._aliases[alias] = event_cls
        self._adapters[event_cls] = TypeAdapter(event_cls)
        return event_cls

    def event(
        self,
        *,
        name: str | None = None,
        aliases: Iterable[str] = (),
    ) -> Callable[[type[E]], type[E]]:
        """Decorator form of :meth:`register`."""

        def decorator(event_cls: type[E]) -> type[E]:
            return self.register(event_cls, name=name, aliases=aliases)

        return decorator

    def __contains__(self, event_cls: object) -> bool:
        return event_cls in self._names

    def __len__(self) -> int:
        return len(self._names)

    def name_for(self, event_cls: type[IntegrationEvent]) -> str:
        try:
            return self._names[event_cls]
        except KeyError:
            raise EventResolutionError(
                default_type_name(event_cls), "event class is not registered",
            ) from None

    def resolve(self, event_type: str) -> type[IntegrationEvent]:
        event_cls = self._lookup(event_type)
        if event_cls is not None:
            return event_cls

        stripped = event_type.split(QUALIFIER_SEPARATOR, 1)[0].strip()
        if stripped != event_type:
            event_cls = self._lookup(stripped)
            if event_cls is not None:
                return event_cls

        return self._search_bare_name(event_type, stripped)

    def serialize(self, event: IntegrationEvent) -> tuple[str, str]:
        event_cls = type(event)
        name = self.name_for(event_cls)
        return name, self._adapters[event_cls].dump_json(event).decode()

    def deserialize(self, event_cls: type[E], payload: str | bytes) -> E:
        name = self.name_for(event_cls)
        try:
            return self._adapters[event_cls].validate_json(payload)
        except pydantic.ValidationError as exc:
            raise EventDeserializationError(name, _describe_validation_error(exc)) from exc
        except Exception as exc:
            raise EventDeserializationError(name, f"{type(exc).__name__}: {exc}") from exc

    def _lookup(self, name: str) -> type[IntegrationEvent] | None:
        return self._by_name.get(name) or self._aliases.get(name)

    def _search_bare_name(self, event_type: str, stripped: str) -> type[IntegrationEvent]:
        bare = _bare_name(stripped)
        if not bare:
            raise EventResolutionError(event_type)

        candidates = [
            cls
            for full_name, cls in self._by_name.items()
            if issubclass(cls, IntegrationEvent)
            and (_bare_name(full_name) == bare or cls.__name__ == bare)
        ]
        if len(candidates) == 1:
            return candidates[0]
        if not candidates:
            raise EventResolutionError(event_type)

        for cls in candidates:
            if stripped in (self._names[cls], default_type_name(cls)):
                return cls
        names = ", ".join(sorted(self._names[cls] for cls in candidates))
        raise EventResolutionError(event_type, f"bare name '{bare}' is ambiguous ({names})")
