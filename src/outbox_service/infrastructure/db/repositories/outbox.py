from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Delete, Select, Update, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from outbox_service.application.exceptions import NotFoundError
from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.domain.value_objects.enums import OutboxStatus
from outbox_service.domain.value_objects.ids import TenantId, WorkerId
from outbox_service.infrastructure.db.mappers import outbox as mapper
from outbox_service.infrastructure.db.models.outbox import OutboxMessageModel


def _pending_filter(tenant_id: UUID | None) -> list[Any]:
    clauses: list[Any] = [OutboxMessageModel.status == OutboxStatus.PENDING]
    if tenant_id is not None:
        clauses.append(OutboxMessageModel.tenant_id == tenant_id)
    return clauses


def pending_query(batch_size: int, tenant_id: UUID | None = None) -> Select[tuple[OutboxMessageModel]]:
    return (
        select(OutboxMessageModel)
        .where(*_pending_filter(tenant_id))
        .order_by(OutboxMessageModel.occurred_at.asc(), OutboxMessageModel.id.asc())
        .limit(batch_size)
    )


def claim_statement(
    batch_size: int,
    *,
    worker_id: WorkerId,
    now: datetime,
    lease_until: datetime,
    tenant_id: UUID | None = None,
) -> Update:
    """Atomically stamp a lease on the oldest unclaimed pending rows.

    Rows locked by a concurrent claimer are skipped rather than waited on.
    """
    candidates = (
        select(OutboxMessageModel.id)
        .where(
            *_pending_filter(tenant_id),
            or_(
                OutboxMessageModel.claimed_until.is_(None),
                OutboxMessageModel.claimed_until <= now,
            ),
        )
        .order_by(OutboxMessageModel.occurred_at.asc(), OutboxMessageModel.id.asc())
        .limit(batch_size)
        .with_for_update(skip_locked=True)
        .scalar_subquery()
    )
    return (
        update(OutboxMessageModel)
        .where(OutboxMessageModel.id.in_(candidates))
        .values(claimed_by=worker_id, claimed_until=lease_until)
        .returning(OutboxMessageModel)
        .execution_options(synchronize_session=False)
    )


def cleanup_statement(before: datetime) -> Delete:
    return delete(OutboxMessageModel).where(
        OutboxMessageModel.status == OutboxStatus.PROCESSED,
        OutboxMessageModel.processed_at < before,
    )


class OutboxRepo:
    """Outbox store bound to a caller-owned session; never commits."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, record: OutboxRecord) -> None:
        self._session.add(mapper.entity_to_model(record))
        await self._session.flush()

    async def fetch_pending(
        self,
        batch_size: int,
        tenant_id: UUID | None = None,
    ) -> list[OutboxRecord]:
        result = await self._session.execute(pending_query(batch_size, tenant_id))
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def claim_pending(
        self,
        batch_size: int,
        *,
        worker_id: WorkerId,
        now: datetime,
        lease_until: datetime,
        tenant_id: UUID | None = None,
    ) -> list[OutboxRecord]:
        stmt = claim_statement(
            batch_size,
            worker_id=worker_id,
            now=now,
            lease_until=lease_until,
            tenant_id=tenant_id,
        )
        result = await self._session.execute(stmt)
        rows = result.scalars().all()
        # RETURNING does not preserve the subquery ordering
        records = [mapper.model_to_entity(m) for m in rows]
        records.sort(key=lambda r: (r.occurred_at, r.id))
        return records

    async def update(self, record: OutboxRecord) -> None:
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record.id)
            .values(**mapper.delivery_state(record))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundError(f"Outbox record {record.id} not found")

    async def get(self, record_id: UUID) -> OutboxRecord | None:
        model = await self._session.get(OutboxMessageModel, record_id)
        return mapper.model_to_entity(model) if model else None

    async def list_records(
        self,
        *,
        status: OutboxStatus | None = None,
        tenant_id: UUID | None = None,
        limit: int = 100,
        max_retry_count: int | None = None,
    ) -> list[OutboxRecord]:
        stmt = select(OutboxMessageModel)
        if status is not None:
            stmt = stmt.where(OutboxMessageModel.status == status)
        if tenant_id is not None:
            stmt = stmt.where(OutboxMessageModel.tenant_id == tenant_id)
        if max_retry_count is not None:
            stmt = stmt.where(OutboxMessageModel.retry_count <= max_retry_count)
        stmt = stmt.order_by(OutboxMessageModel.occurred_at.asc()).limit(limit)
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count_by_status(self, tenant_id: UUID | None = None) -> dict[OutboxStatus, int]:
        stmt = select(OutboxMessageModel.status, func.count()).group_by(OutboxMessageModel.status)
        if tenant_id is not None:
            stmt = stmt.where(OutboxMessageModel.tenant_id == tenant_id)
        result = await self._session.execute(stmt)
        return {OutboxStatus(status): count for status, count in result.all()}

    async def pending_tenants(self) -> list[TenantId]:
        stmt = (
            select(OutboxMessageModel.tenant_id)
            .where(OutboxMessageModel.status == OutboxStatus.PENDING)
            .group_by(OutboxMessageModel.tenant_id)
            .order_by(func.min(OutboxMessageModel.occurred_at))
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def cleanup_processed(self, before: datetime) -> int:
        result = await self._session.execute(
            cleanup_statement(before).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
