"""Composition root: wires registries, policy and dispatcher from settings."""
from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable
from datetime import timedelta

from outbox_service.application.events.handlers import HandlerRegistry
from outbox_service.application.events.type_registry import EventTypeRegistry
from outbox_service.application.policies.retry import RetryPolicy
from outbox_service.application.ports.alerts import AlertPublisher
from outbox_service.application.ports.clock import Clock
from outbox_service.application.repositories.outbox import OutboxStore
from outbox_service.config import Settings
from outbox_service.domain.value_objects.enums import HandlerFailureMode
from outbox_service.services.outbox_dispatcher import OutboxDispatcher

logger = logging.getLogger(__name__)


def load_event_modules(
    module_paths: Iterable[str],
    event_types: EventTypeRegistry,
    handlers: HandlerRegistry,
) -> None:
    """Import each module and call its ``register(event_types, handlers)`` hook.

    Modules own their event shapes and subscribers; this is the only place
    they are attached to the dispatcher.
    """
    for path in module_paths:
        module = importlib.import_module(path)
        register = getattr(module, "register", None)
        if not callable(register):
            raise ImportError(f"Event module '{path}' does not define register(event_types, handlers)")
        register(event_types, handlers)
        logger.info("Loaded event module %s", path)


def build_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.OUTBOX_MAX_ATTEMPTS,
        escalation_threshold=settings.OUTBOX_ESCALATION_THRESHOLD,
        base_delay=timedelta(seconds=settings.OUTBOX_RETRY_BASE_DELAY),
        max_delay=timedelta(seconds=settings.OUTBOX_RETRY_MAX_DELAY),
    )


def build_dispatcher(
    settings: Settings,
    store: OutboxStore,
    event_types: EventTypeRegistry,
    handlers: HandlerRegistry,
    *,
    clock: Clock | None = None,
    alerts: AlertPublisher | None = None,
) -> OutboxDispatcher:
    return OutboxDispatcher(
        store,
        event_types,
        handlers,
        clock=clock,
        retry_policy=build_retry_policy(settings),
        batch_size=settings.OUTBOX_BATCH_SIZE,
        failure_mode=HandlerFailureMode(settings.OUTBOX_HANDLER_FAILURE_MODE),
        claim_lease=settings.claim_lease,
        alerts=alerts,
    )
