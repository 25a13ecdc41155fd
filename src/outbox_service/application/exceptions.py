from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ConflictError(AppError):
    pass


class DispatchError(AppError):
    """A failure local to one outbox record; recorded on the record, never raised out of a batch."""


class EventResolutionError(DispatchError):
    """The stored event type does not map to exactly one registered event shape."""

    def __init__(self, event_type: str, reason: str = "no registered event shape matches") -> None:
        self.event_type = event_type
        super().__init__(f"Could not resolve event type '{event_type}': {reason}")


class EventDeserializationError(DispatchError):
    """The payload does not fit the resolved event shape."""

    def __init__(self, event_type: str, reason: str) -> None:
        self.event_type = event_type
        super().__init__(f"Could not deserialize event of type '{event_type}': {reason}")


class HandlerError(DispatchError):
    def __init__(self, handler_name: str, cause: Exception) -> None:
        self.handler_name = handler_name
        self.cause = cause
        super().__init__(f"Handler {handler_name} failed: {type(cause).__name__}: {cause}")


class AggregateHandlerError(DispatchError):
    def __init__(self, errors: list[HandlerError], total: int) -> None:
        self.errors = errors
        details = "; ".join(e.detail for e in errors)
        super().__init__(f"{len(errors)} of {total} handlers failed: {details}")
