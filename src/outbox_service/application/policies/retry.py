from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from outbox_service.domain.entities.outbox_record import OutboxRecord
from outbox_service.domain.value_objects.enums import OutboxStatus


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How failed records are escalated and when they may re-enter the pending pool.

    The dispatcher never requeues on its own; ``can_requeue`` is consulted
    only by the explicit requeue operation.
    """

    max_attempts: int = 3
    escalation_threshold: int = 3
    base_delay: timedelta = timedelta(seconds=5)
    max_delay: timedelta = timedelta(seconds=300)

    def is_exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.escalation_threshold

    def next_delay(self, retry_count: int) -> timedelta:
        attempt = max(retry_count, 1)
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def can_requeue(self, record: OutboxRecord, now: datetime) -> bool:
        if record.status != OutboxStatus.FAILED:
            return False
        if record.retry_count >= self.max_attempts:
            return False
        if record.last_attempt_at is None:
            return True
        return record.last_attempt_at + self.next_delay(record.retry_count) <= now
