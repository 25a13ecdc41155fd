"""Outbox dispatcher: drains pending records and delivers them to in-process handlers."""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import timedelta
from uuid import UUID

from outbox_service.application.dto.dispatch import DispatchReport
from outbox_service.application.events.handlers import (
    EventHandler,
    HandlerRegistry,
    handler_name,
)
from outbox_service.application.events.type_registry import EventTypeRegistry
from outbox_service.application.exceptions import (
    AggregateHandlerError,
    DispatchError,
    HandlerError,
)
from outbox_service.application.policies.retry import RetryPolicy
from outbox_service.application.ports.alerts import AlertPublisher
from outbox_service.application.ports.clock import Clock, SystemClock
from outbox_service.application.repositories.outbox import OutboxStore
from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.domain.events.integration_event import IntegrationEvent
from outbox_service.domain.value_objects.enums import HandlerFailureMode
from outbox_service.domain.value_objects.ids import WorkerId

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_CLAIM_LEASE = timedelta(minutes=5)


class OutboxDispatcher:
    """Delivers one bounded batch of pending outbox records per call.

    Records are handled one at a time and each record's handlers run
    sequentially in registration order. A failure local to a record is
    written to that record and the batch moves on; store errors propagate.

    With ``claim_lease`` set the batch is claimed atomically so concurrent
    dispatchers never see the same record. ``claim_lease=None`` falls back
    to a plain read, which lets two concurrent calls deliver a record twice.
    """

    def __init__(
        self,
        store: OutboxStore,
        event_types: EventTypeRegistry,
        handlers: HandlerRegistry,
        *,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        failure_mode: HandlerFailureMode = HandlerFailureMode.STOP_ON_FIRST,
        claim_lease: timedelta | None = DEFAULT_CLAIM_LEASE,
        worker_id: WorkerId | None = None,
        alerts: AlertPublisher | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._store = store
        self._event_types = event_types
        self._handlers = handlers
        self._clock = clock or SystemClock()
        self._retry_policy = retry_policy or RetryPolicy()
        self._batch_size = batch_size
        self._failure_mode = HandlerFailureMode(failure_mode)
        self._claim_lease = claim_lease
        self._worker_id = worker_id or WorkerId(f"dispatcher-{uuid.uuid4().hex[:8]}")
        self._alerts = alerts

    @property
    def worker_id(self) -> WorkerId:
        return self._worker_id

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def process_pending(
        self,
        tenant_id: UUID | None = None,
        cancel: asyncio.Event | None = None,
    ) -> DispatchReport:
        """Drain one batch of pending records, globally or for one tenant.

        ``cancel`` is checked between records only: the record in flight
        always finishes and the rest of the batch is left pending.
        """
        cancel = cancel or asyncio.Event()
        report = DispatchReport(tenant_id=tenant_id)

        batch = await self._fetch_batch(tenant_id)
        report.fetched = len(batch)
        if not batch:
            return report

        for index, record in enumerate(batch):
            if cancel.is_set():
                report.cancelled = True
                await self._release(batch[index:])
                logger.info(
                    "Dispatch cancelled, leaving %d outbox records for a later run",
                    len(batch) - index,
                )
                break

            if await self._process_record(record, cancel):
                report.processed += 1
            else:
                report.failed += 1
                if self._retry_policy.is_exhausted(record.retry_count):
                    report.exhausted.append(record.id)

        logger.info(
            "Outbox batch done (tenant=%s, fetched=%d, processed=%d, failed=%d)",
            tenant_id or "*",
            report.fetched,
            report.processed,
            report.failed,
        )
        return report

    async def _fetch_batch(self, tenant_id: UUID | None) -> list[OutboxRecord]:
        if self._claim_lease is None:
            return await self._store.fetch_pending(self._batch_size, tenant_id=tenant_id)

        now = self._clock.now()
        return await self._store.claim_pending(
            self._batch_size,
            worker_id=self._worker_id,
            now=now,
            lease_until=now + self._claim_lease,
            tenant_id=tenant_id,
        )

    async def _release(self, records: list[OutboxRecord]) -> None:
        if self._claim_lease is None:
            return
        for record in records:
            record.release_claim()
            await self._store.update(record)

    async def _process_record(self, record: OutboxRecord, cancel: asyncio.Event) -> bool:
        logger.info(
            "Processing outbox record %s of type %s (tenant %s)",
            record.id,
            record.event_type,
            record.tenant_id,
        )
        try:
            await self._dispatch(record, cancel)
        except DispatchError as exc:
            logger.exception("Failed to process outbox record %s", record.id)
            record.release_claim()
            record.mark_failed(f"{type(exc).__name__}: {exc.detail}", self._clock.now())
            await self._store.update(record)
            if self._retry_policy.is_exhausted(record.retry_count):
                await self._escalate(record)
            return False

        record.release_claim()
        record.mark_processed(self._clock.now())
        await self._store.update(record)
        logger.info("Successfully processed outbox record %s", record.id)
        return True

    async def _dispatch(self, record: OutboxRecord, cancel: asyncio.Event) -> None:
        event_cls = self._event_types.resolve(record.event_type)
        event = self._event_types.deserialize(event_cls, record.payload)

        handlers = self._handlers.handlers_for(event_cls)
        if not handlers:
            logger.debug("No handlers registered for %s", event_cls.__qualname__)
            return

        if self._failure_mode == HandlerFailureMode.STOP_ON_FIRST:
            for handler in handlers:
                await self._invoke(handler, event, cancel)
            return

        errors: list[HandlerError] = []
        for handler in handlers:
            try:
                await self._invoke(handler, event, cancel)
            except HandlerError as exc:
                errors.append(exc)
        if errors:
            raise AggregateHandlerError(errors, len(handlers))

    @staticmethod
    async def _invoke(
        handler: EventHandler,
        event: IntegrationEvent,
        cancel: asyncio.Event,
    ) -> None:
        try:
            await handler(event, cancel)
        except Exception as exc:
            raise HandlerError(handler_name(handler), exc) from exc

    async def _escalate(self, record: OutboxRecord) -> None:
        logger.critical(
            "Outbox record %s has failed %d times and will not be retried automatically",
            record.id,
            record.retry_count,
        )
        if self._alerts is None:
            return
        try:
            await self._alerts.record_exhausted(record)
        except Exception:
            logger.exception("Failed to publish exhaustion alert for outbox record %s", record.id)
