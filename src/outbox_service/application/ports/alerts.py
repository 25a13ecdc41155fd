from __future__ import annotations

from typing import Protocol

from outbox_service.domain.entities.outbox_record import OutboxRecord


class AlertPublisher(Protocol):
    async def record_exhausted(self, record: OutboxRecord) -> None: ...
