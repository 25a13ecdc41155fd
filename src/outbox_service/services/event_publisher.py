from __future__ import annotations

from collections.abc import Iterable

from outbox_service.application.events.type_registry import EventTypeRegistry
from outbox_service.application.uow import UnitOfWork
from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.domain.events.integration_event import IntegrationEvent


def to_outbox_record(event: IntegrationEvent, event_types: EventTypeRegistry) -> OutboxRecord:
    event_type, payload = event_types.serialize(event)
    return OutboxRecord(
        id=event.id,
        tenant_id=event.tenant_id,
        event_type=event_type,
        payload=payload,
        occurred_at=event.occurred_at,
    )


async def publish(
    event: IntegrationEvent,
    event_types: EventTypeRegistry,
    uow: UnitOfWork,
) -> OutboxRecord:
    """Stage an integration event in the outbox.

    Must run on the same unit of work as the domain write it describes;
    committing is the caller's job.
    """
    record = to_outbox_record(event, event_types)
    await uow.outbox.append(record)
    return record


async def publish_many(
    events: Iterable[IntegrationEvent],
    event_types: EventTypeRegistry,
    uow: UnitOfWork,
) -> list[OutboxRecord]:
    return [await publish(event, event_types, uow) for event in events]
