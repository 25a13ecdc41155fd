"""Redis Pub/Sub publisher for operational outbox alerts."""
from __future__ import annotations

import logging

import redis.asyncio as aioredis

from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.infrastructure.bus.serializer import serialize_event

logger = logging.getLogger(__name__)

RECORD_EXHAUSTED = "outbox.record_exhausted"


class RedisAlertPublisher:
    """Implements application.ports.alerts.AlertPublisher."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def record_exhausted(self, record: OutboxRecord) -> None:
        raw = serialize_event(
            RECORD_EXHAUSTED,
            {
                "record_id": record.id,
                "tenant_id": record.tenant_id,
                "event_type": record.event_type,
                "status": record.status.name.lower(),
                "retry_count": record.retry_count,
                "last_error": record.last_error,
                "occurred_at": record.occurred_at,
            },
        )
        receivers = await self._redis.publish(self._channel, raw)
        logger.debug(
            "Exhaustion alert for outbox record %s sent to %d subscribers",
            record.id,
            receivers,
        )
