from __future__ import annotations

from datetime import timedelta
from uuid import UUID

from fastapi import APIRouter, Query

from outbox_service.api.deps import (
    ClockDep,
    CurrentAdmin,
    DispatcherDep,
    RetryPolicyDep,
    StoreDep,
)
from outbox_service.api.v1.schemas.outbox import (
    CleanupRequest,
    CleanupResponse,
    DispatchResponse,
    OutboxRecordResponse,
    OutboxStatsResponse,
    RequeueRequest,
    RequeueResponse,
    StatusName,
    status_from_name,
)
from outbox_service.config import settings
from outbox_service.services import outbox_admin_service

router = APIRouter(prefix="/api/v1/outbox", tags=["outbox"])


@router.get("/records", response_model=list[OutboxRecordResponse])
async def list_records(
    admin: CurrentAdmin,
    store: StoreDep,
    status: StatusName | None = Query(None),
    tenant_id: UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
) -> list[OutboxRecordResponse]:
    records = await outbox_admin_service.list_records(
        store,
        status=status_from_name(status) if status else None,
        tenant_id=tenant_id,
        limit=limit,
    )
    return [OutboxRecordResponse.model_validate(r, from_attributes=True) for r in records]


@router.get("/records/{record_id}", response_model=OutboxRecordResponse)
async def get_record(
    record_id: UUID,
    admin: CurrentAdmin,
    store: StoreDep,
) -> OutboxRecordResponse:
    record = await outbox_admin_service.get_record(record_id, store)
    return OutboxRecordResponse.model_validate(record, from_attributes=True)


@router.post("/records/{record_id}/retry", response_model=OutboxRecordResponse)
async def retry_record(
    record_id: UUID,
    admin: CurrentAdmin,
    store: StoreDep,
    reset_attempts: bool = Query(False),
) -> OutboxRecordResponse:
    record = await outbox_admin_service.retry_record(
        record_id, store, reset_attempts=reset_attempts,
    )
    return OutboxRecordResponse.model_validate(record, from_attributes=True)


@router.get("/stats", response_model=OutboxStatsResponse)
async def get_stats(
    admin: CurrentAdmin,
    store: StoreDep,
    tenant_id: UUID | None = Query(None),
) -> OutboxStatsResponse:
    counts = await outbox_admin_service.stats(store, tenant_id)
    return OutboxStatsResponse(**{status.name.lower(): count for status, count in counts.items()})


@router.post("/dispatch", response_model=DispatchResponse)
async def dispatch_now(
    admin: CurrentAdmin,
    dispatcher: DispatcherDep,
    tenant_id: UUID | None = Query(None),
) -> DispatchResponse:
    report = await dispatcher.process_pending(tenant_id)
    return DispatchResponse.model_validate(report, from_attributes=True)


@router.post("/requeue", response_model=RequeueResponse)
async def requeue_failed(
    body: RequeueRequest,
    admin: CurrentAdmin,
    store: StoreDep,
    policy: RetryPolicyDep,
    clock: ClockDep,
) -> RequeueResponse:
    records = await outbox_admin_service.requeue_failed(
        store,
        policy,
        clock,
        tenant_id=body.tenant_id,
        force=body.force,
        limit=body.limit,
    )
    return RequeueResponse(requeued=len(records), record_ids=[r.id for r in records])


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_processed(
    body: CleanupRequest,
    admin: CurrentAdmin,
    store: StoreDep,
    clock: ClockDep,
) -> CleanupResponse:
    retention = (
        timedelta(days=body.older_than_days)
        if body.older_than_days is not None
        else settings.retention
    )
    deleted = await outbox_admin_service.cleanup_processed(store, retention, clock)
    return CleanupResponse(deleted=deleted)
