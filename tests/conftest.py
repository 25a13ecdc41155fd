"""Shared test fixtures."""
from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from outbox_service.application.events.handlers import HandlerRegistry
from outbox_service.application.events.type_registry import EventTypeRegistry
from outbox_service.application.exceptions import NotFoundError
from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.domain.value_objects.enums import OutboxStatus
from tests.sample_events import AccountCreated, BillingAccountCreated, OrderCreated, OrderShipped

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
TENANT_A = UUID("00000000-0000-0000-0000-00000000000a")
TENANT_B = UUID("00000000-0000-0000-0000-00000000000b")


class FixedClock:
    def __init__(self, now: datetime = T0) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        self._now += delta


def make_record(
    *,
    event_type: str = "OrderCreated",
    payload: str | None = None,
    tenant_id: UUID = TENANT_A,
    occurred_at: datetime | None = None,
    status: OutboxStatus = OutboxStatus.PENDING,
    retry_count: int = 0,
    last_error: str | None = None,
    last_attempt_at: datetime | None = None,
    processed_at: datetime | None = None,
) -> OutboxRecord:
    if payload is None:
        payload = (
            f'{{"tenant_id": "{tenant_id}", "order_id": "{uuid.uuid4()}", "amount": 10}}'
        )
    if status == OutboxStatus.PROCESSED and processed_at is None:
        processed_at = T0
    return OutboxRecord(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        event_type=event_type,
        payload=payload,
        occurred_at=occurred_at or T0,
        status=status,
        processed_at=processed_at,
        last_error=last_error,
        retry_count=retry_count,
        last_attempt_at=last_attempt_at,
    )


class FakeOutboxStore:
    """In-memory OutboxStore. Hands out copies, like a real database would."""

    def __init__(self, records: list[OutboxRecord] | None = None) -> None:
        self.records: dict[UUID, OutboxRecord] = {}
        self.updates: list[OutboxRecord] = []
        self.failing_updates: set[UUID] = set()
        for record in records or []:
            self.records[record.id] = replace(record)

    def _oldest_pending(self, tenant_id: UUID | None) -> list[OutboxRecord]:
        pending = [
            r for r in self.records.values()
            if r.status == OutboxStatus.PENDING and (tenant_id is None or r.tenant_id == tenant_id)
        ]
        return sorted(pending, key=lambda r: (r.occurred_at, r.id))

    async def append(self, record: OutboxRecord) -> None:
        if record.id in self.records:
            raise ValueError(f"duplicate outbox record {record.id}")
        self.records[record.id] = replace(record)

    async def fetch_pending(
        self,
        batch_size: int,
        tenant_id: UUID | None = None,
    ) -> list[OutboxRecord]:
        return [replace(r) for r in self._oldest_pending(tenant_id)[:batch_size]]

    async def claim_pending(
        self,
        batch_size: int,
        *,
        worker_id: str,
        now: datetime,
        lease_until: datetime,
        tenant_id: UUID | None = None,
    ) -> list[OutboxRecord]:
        free = [r for r in self._oldest_pending(tenant_id) if not r.is_claimed(now)]
        claimed = []
        for record in free[:batch_size]:
            record.claim(worker_id, lease_until)
            claimed.append(replace(record))
        return claimed

    async def update(self, record: OutboxRecord) -> None:
        if record.id not in self.records:
            raise NotFoundError(f"Outbox record {record.id} not found")
        if record.id in self.failing_updates:
            raise ConnectionError("database unavailable")
        self.records[record.id] = replace(record)
        self.updates.append(replace(record))

    async def get(self, record_id: UUID) -> OutboxRecord | None:
        record = self.records.get(record_id)
        return replace(record) if record else None

    async def list_records(
        self,
        *,
        status: OutboxStatus | None = None,
        tenant_id: UUID | None = None,
        limit: int = 100,
        max_retry_count: int | None = None,
    ) -> list[OutboxRecord]:
        matching = [
            r for r in self.records.values()
            if (status is None or r.status == status)
            and (tenant_id is None or r.tenant_id == tenant_id)
            and (max_retry_count is None or r.retry_count <= max_retry_count)
        ]
        matching.sort(key=lambda r: r.occurred_at)
        return [replace(r) for r in matching[:limit]]

    async def count_by_status(self, tenant_id: UUID | None = None) -> dict[OutboxStatus, int]:
        counts: dict[OutboxStatus, int] = {}
        for r in self.records.values():
            if tenant_id is None or r.tenant_id == tenant_id:
                counts[r.status] = counts.get(r.status, 0) + 1
        return counts

    async def pending_tenants(self) -> list[UUID]:
        tenants: list[UUID] = []
        for r in self._oldest_pending(None):
            if r.tenant_id not in tenants:
                tenants.append(r.tenant_id)
        return tenants

    async def cleanup_processed(self, before: datetime) -> int:
        expired = [
            r.id for r in self.records.values()
            if r.status == OutboxStatus.PROCESSED and r.processed_at < before
        ]
        for record_id in expired:
            del self.records[record_id]
        return len(expired)


class FakeUoW:
    def __init__(self, outbox: FakeOutboxStore | None = None) -> None:
        self.outbox = outbox or FakeOutboxStore()
        self.committed = False
        self.rolled_back = False

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True


class RecordingAlerts:
    def __init__(self) -> None:
        self.exhausted: list[OutboxRecord] = []

    async def record_exhausted(self, record: OutboxRecord) -> None:
        self.exhausted.append(replace(record))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> FakeOutboxStore:
    return FakeOutboxStore()


@pytest.fixture
def alerts() -> RecordingAlerts:
    return RecordingAlerts()


@pytest.fixture
def event_types() -> EventTypeRegistry:
    registry = EventTypeRegistry()
    registry.register(OrderCreated)
    registry.register(OrderShipped)
    registry.register(AccountCreated, name="identity.AccountCreated")
    registry.register(BillingAccountCreated, name="billing.AccountCreated")
    return registry


@pytest.fixture
def handlers() -> HandlerRegistry:
    return HandlerRegistry()

