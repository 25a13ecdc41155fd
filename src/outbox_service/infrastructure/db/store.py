from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.domain.value_objects.enums import OutboxStatus
from outbox_service.domain.value_objects.ids import TenantId, WorkerId
from outbox_service.infrastructure.db.repositories.outbox import OutboxRepo


class SqlAlchemyOutboxStore:
    """Outbox store for the dispatcher: one session and one commit per call.

    Each record update is therefore its own transaction, so a later failure
    in the batch never rolls back an earlier success.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _repo(self) -> AsyncIterator[OutboxRepo]:
        async with self._session_factory() as session:
            yield OutboxRepo(session)
            await session.commit()

    async def append(self, record: OutboxRecord) -> None:
        async with self._repo() as repo:
            await repo.append(record)

    async def fetch_pending(
        self,
        batch_size: int,
        tenant_id: UUID | None = None,
    ) -> list[OutboxRecord]:
        async with self._repo() as repo:
            return await repo.fetch_pending(batch_size, tenant_id)

    async def claim_pending(
        self,
        batch_size: int,
        *,
        worker_id: WorkerId,
        now: datetime,
        lease_until: datetime,
        tenant_id: UUID | None = None,
    ) -> list[OutboxRecord]:
        async with self._repo() as repo:
            return await repo.claim_pending(
                batch_size,
                worker_id=worker_id,
                now=now,
                lease_until=lease_until,
                tenant_id=tenant_id,
            )

    async def update(self, record: OutboxRecord) -> None:
        async with self._repo() as repo:
            await repo.update(record)

    async def get(self, record_id: UUID) -> OutboxRecord | None:
        async with self._repo() as repo:
            return await repo.get(record_id)

    async def list_records(
        self,
        *,
        status: OutboxStatus | None = None,
        tenant_id: UUID | None = None,
        limit: int = 100,
        max_retry_count: int | None = None,
    ) -> list[OutboxRecord]:
        async with self._repo() as repo:
            return await repo.list_records(
                status=status,
                tenant_id=tenant_id,
                limit=limit,
                max_retry_count=max_retry_count,
            )

    async def count_by_status(self, tenant_id: UUID | None = None) -> dict[OutboxStatus, int]:
        async with self._repo() as repo:
            return await repo.count_by_status(tenant_id)

    async def pending_tenants(self) -> list[TenantId]:
        async with self._repo() as repo:
            return await repo.pending_tenants()

    async def cleanup_processed(self, before: datetime) -> int:
        async with self._repo() as repo:
            return await repo.cleanup_processed(before)
