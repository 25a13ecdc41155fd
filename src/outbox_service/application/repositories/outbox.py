from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.domain.value_objects.enums import OutboxStatus
from outbox_service.domain.value_objects.ids import TenantId, WorkerId


class OutboxWriter(Protocol):
    """Producer side: append inside the caller's transaction."""

    async def append(self, record: OutboxRecord) -> None: ...


class OutboxStore(OutboxWriter, Protocol):
    async def fetch_pending(
        self,
        batch_size: int,
        tenant_id: UUID | None = None,
    ) -> list[OutboxRecord]: ...

    async def claim_pending(
        self,
        batch_size: int,
        *,
        worker_id: WorkerId,
        now: datetime,
        lease_until: datetime,
        tenant_id: UUID | None = None,
    ) -> list[OutboxRecord]: ...

    async def update(self, record: OutboxRecord) -> None: ...

    async def get(self, record_id: UUID) -> OutboxRecord | None: ...

    async def list_records(
        self,
        *,
        status: OutboxStatus | None = None,
        tenant_id: UUID | None = None,
        limit: int = 100,
        max_retry_count: int | None = None,
    ) -> list[OutboxRecord]: ...

    async def count_by_status(self, tenant_id: UUID | None = None) -> dict[OutboxStatus, int]: ...

    async def pending_tenants(self) -> list[TenantId]: ...

    async def cleanup_processed(self, before: datetime) -> int: ...
