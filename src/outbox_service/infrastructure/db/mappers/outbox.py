from __future__ import annotations

from typing import Any

from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.domain.value_objects.enums import OutboxStatus
from outbox_service.infrastructure.db.models.outbox import OutboxMessageModel


def model_to_entity(model: OutboxMessageModel) -> OutboxRecord:
    return OutboxRecord(
        id=model.id,
        tenant_id=model.tenant_id,
        event_type=model.event_type,
        payload=model.payload,
        occurred_at=model.occurred_at,
        status=OutboxStatus(model.status),
        processed_at=model.processed_at,
        last_error=model.last_error,
        retry_count=model.retry_count,
        last_attempt_at=model.last_attempt_at,
        claimed_by=model.claimed_by,
        claimed_until=model.claimed_until,
    )


def entity_to_model(entity: OutboxRecord) -> OutboxMessageModel:
    return OutboxMessageModel(
        id=entity.id,
        tenant_id=entity.tenant_id,
        event_type=entity.event_type,
        payload=entity.payload,
        occurred_at=entity.occurred_at,
        **delivery_state(entity),
    )


def delivery_state(entity: OutboxRecord) -> dict[str, Any]:
    """The only columns an update may touch."""
    return {
        "status": int(entity.status),
        "processed_at": entity.processed_at,
        "last_error": entity.last_error,
        "retry_count": entity.retry_count,
        "last_attempt_at": entity.last_attempt_at,
        "claimed_by": entity.claimed_by,
        "claimed_until": entity.claimed_until,
    }
