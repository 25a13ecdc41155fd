from __future__ import annotations

import logging
import uuid
from datetime import timedelta

from outbox_service.application.exceptions import ConflictError, NotFoundError
from outbox_service.application.policies.retry import RetryPolicy
from outbox_service.application.ports.clock import Clock
from outbox_service.application.repositories.outbox import OutboxStore
from outbox_service.domain.entities.outbox_record import InvalidStateTransition, OutboxRecord
from outbox_service.domain.value_objects.enums import OutboxStatus

logger = logging.getLogger(__name__)


async def get_record(record_id: uuid.UUID, store: OutboxStore) -> OutboxRecord:
    record = await store.get(record_id)
    if record is None:
        raise NotFoundError("Outbox record not found")
    return record


async def list_records(
    store: OutboxStore,
    *,
    status: OutboxStatus | None = None,
    tenant_id: uuid.UUID | None = None,
    limit: int = 100,
) -> list[OutboxRecord]:
    return await store.list_records(status=status, tenant_id=tenant_id, limit=limit)


async def stats(store: OutboxStore, tenant_id: uuid.UUID | None = None) -> dict[OutboxStatus, int]:
    counts = await store.count_by_status(tenant_id)
    return {status: counts.get(status, 0) for status in OutboxStatus}


async def retry_record(
    record_id: uuid.UUID,
    store: OutboxStore,
    *,
    reset_attempts: bool = False,
) -> OutboxRecord:
    """Put one failed record back into the pending pool (operator action)."""
    record = await get_record(record_id, store)
    try:
        record.reset_for_retry(reset_attempts=reset_attempts)
    except InvalidStateTransition as exc:
        raise ConflictError(str(exc)) from exc
    await store.update(record)
    logger.info(
        "Outbox record %s requeued by operator (retry_count=%d)",
        record.id,
        record.retry_count,
    )
    return record


async def requeue_failed(
    store: OutboxStore,
    policy: RetryPolicy,
    clock: Clock,
    *,
    tenant_id: uuid.UUID | None = None,
    force: bool = False,
    limit: int = 100,
) -> list[OutboxRecord]:
    """Move failed records back to pending.

    Without ``force`` only records the retry policy allows (attempts left and
    backoff elapsed) are requeued. ``retry_count`` is never reset here.
    """
    now = clock.now()
    failed = await store.list_records(
        status=OutboxStatus.FAILED,
        tenant_id=tenant_id,
        limit=limit,
        # records with attempts left only
        max_retry_count=None if force else policy.max_attempts - 1,
    )

    requeued: list[OutboxRecord] = []
    for record in failed:
        if not force and not policy.can_requeue(record, now):
            continue
        record.reset_for_retry()
        await store.update(record)
        requeued.append(record)

    if requeued:
        logger.info("Requeued %d failed outbox records", len(requeued))
    return requeued


async def cleanup_processed(store: OutboxStore, retention: timedelta, clock: Clock) -> int:
    before = clock.now() - retention
    deleted = await store.cleanup_processed(before)
    if deleted:
        logger.info("Deleted %d processed outbox records older than %s", deleted, before.isoformat())
    return deleted
