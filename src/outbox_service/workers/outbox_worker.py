"""Outbox worker: periodically drives the dispatcher, plus requeue and cleanup housekeeping."""
from __future__ import annotations

import asyncio
import logging
import signal
import time
from datetime import timedelta
from uuid import UUID

import redis.asyncio as aioredis

from outbox_service.application.dto.dispatch import DispatchReport
from outbox_service.application.events.handlers import HandlerRegistry
from outbox_service.application.events.type_registry import EventTypeRegistry
from outbox_service.application.policies.retry import RetryPolicy
from outbox_service.application.ports.clock import Clock, SystemClock
from outbox_service.application.repositories.outbox import OutboxStore
from outbox_service.bootstrap import build_dispatcher, build_retry_policy, load_event_modules
from outbox_service.config import Settings, settings
from outbox_service.infrastructure.bus.redis_pubsub import RedisAlertPublisher
from outbox_service.infrastructure.db.session import AsyncSessionLocal
from outbox_service.infrastructure.db.store import SqlAlchemyOutboxStore
from outbox_service.services import outbox_admin_service
from outbox_service.services.outbox_dispatcher import OutboxDispatcher

logger = logging.getLogger(__name__)


class OutboxWorker:
    """Scheduler around :class:`OutboxDispatcher`.

    One cycle dispatches either a single global batch or one batch per tenant
    that has pending records (run concurrently, bounded by
    ``tenant_concurrency``). Failed records only come back when
    ``auto_requeue`` is on and the retry policy allows it.
    """

    def __init__(
        self,
        dispatcher: OutboxDispatcher,
        store: OutboxStore,
        *,
        poll_interval: float,
        retry_policy: RetryPolicy,
        clock: Clock | None = None,
        per_tenant: bool = False,
        tenant_concurrency: int = 4,
        auto_requeue: bool = False,
        retention: timedelta | None = None,
        cleanup_interval: float = 3600.0,
    ) -> None:
        self._dispatcher = dispatcher
        self._store = store
        self._poll_interval = poll_interval
        self._retry_policy = retry_policy
        self._clock = clock or SystemClock()
        self._per_tenant = per_tenant
        self._tenant_concurrency = max(tenant_concurrency, 1)
        self._auto_requeue = auto_requeue
        self._retention = retention
        self._cleanup_interval = cleanup_interval
        self._last_cleanup: float | None = None

    @property
    def dispatcher(self) -> OutboxDispatcher:
        return self._dispatcher

    @property
    def store(self) -> OutboxStore:
        return self._store

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def run(self, stop: asyncio.Event) -> None:
        logger.info(
            "Outbox worker started (poll=%.1fs, batch=%d, per_tenant=%s, worker=%s)",
            self._poll_interval,
            self._dispatcher.batch_size,
            self._per_tenant,
            self._dispatcher.worker_id,
        )
        while not stop.is_set():
            full_batch = False
            try:
                reports = await self.run_once(stop)
                full_batch = any(r.fetched >= self._dispatcher.batch_size for r in reports)
            except Exception:
                logger.exception("Outbox worker loop error")

            if full_batch:
                # more records are likely waiting
                await asyncio.sleep(0)
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
            except TimeoutError:
                pass
        logger.info("Outbox worker stopped")

    async def run_once(self, stop: asyncio.Event | None = None) -> list[DispatchReport]:
        stop = stop or asyncio.Event()
        if self._auto_requeue:
            await outbox_admin_service.requeue_failed(self._store, self._retry_policy, self._clock)

        if self._per_tenant:
            reports = await self._dispatch_per_tenant(stop)
        else:
            reports = [await self._dispatcher.process_pending(cancel=stop)]

        await self._cleanup_if_due()
        return reports

    async def _dispatch_per_tenant(self, stop: asyncio.Event) -> list[DispatchReport]:
        tenants = await self._store.pending_tenants()
        if not tenants:
            return []
        semaphore = asyncio.Semaphore(self._tenant_concurrency)

        async def _dispatch(tenant_id: UUID) -> DispatchReport:
            async with semaphore:
                return await self._dispatcher.process_pending(tenant_id, stop)

        return list(await asyncio.gather(*(_dispatch(t) for t in tenants)))

    async def _cleanup_if_due(self) -> None:
        if self._retention is None:
            return
        now = time.monotonic()
        if self._last_cleanup is not None and now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        await outbox_admin_service.cleanup_processed(self._store, self._retention, self._clock)


def build_outbox_worker(
    config: Settings,
    redis: aioredis.Redis,
    *,
    store: OutboxStore | None = None,
) -> OutboxWorker:
    store = store or SqlAlchemyOutboxStore(AsyncSessionLocal)
    event_types = EventTypeRegistry()
    handlers = HandlerRegistry()
    load_event_modules(config.OUTBOX_EVENT_MODULES, event_types, handlers)

    dispatcher = build_dispatcher(
        config,
        store,
        event_types,
        handlers,
        alerts=RedisAlertPublisher(redis, config.OUTBOX_ALERTS_CHANNEL),
    )
    return OutboxWorker(
        dispatcher,
        store,
        poll_interval=config.OUTBOX_POLL_INTERVAL,
        retry_policy=build_retry_policy(config),
        per_tenant=config.OUTBOX_PER_TENANT,
        tenant_concurrency=config.OUTBOX_TENANT_CONCURRENCY,
        auto_requeue=config.OUTBOX_AUTO_REQUEUE,
        retention=config.retention,
        cleanup_interval=config.OUTBOX_CLEANUP_INTERVAL,
    )


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    worker = build_outbox_worker(settings, redis)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await worker.run(stop)
    finally:
        await redis.aclose()


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
