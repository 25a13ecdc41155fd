from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from outbox_service.domain.value_objects.enums import OutboxStatus
from outbox_service.domain.value_objects.ids import WorkerId

MAX_ERROR_LENGTH = 2048

_IMMUTABLE_FIELDS = frozenset({"id", "tenant_id", "event_type", "payload", "occurred_at"})


class InvalidStateTransition(ValueError):
    """Raised when a delivery-state change is not allowed from the current status."""


@dataclass(slots=True)
class OutboxRecord:
    """A serialized integration event plus its delivery state.

    Identity and content fields are write-once; only the delivery-state
    fields change after construction.
    """

    id: UUID
    tenant_id: UUID
    event_type: str
    payload: str
    occurred_at: datetime
    status: OutboxStatus = OutboxStatus.PENDING
    processed_at: datetime | None = None
    last_error: str | None = None
    retry_count: int = 0
    last_attempt_at: datetime | None = None
    claimed_by: WorkerId | None = None
    claimed_until: datetime | None = None

    def __post_init__(self) -> None:
        if not self.event_type:
            raise ValueError("event_type must not be empty")
        if self.retry_count < 0:
            raise ValueError("retry_count must not be negative")
        self.status = OutboxStatus(self.status)
        if (self.processed_at is not None) != (self.status == OutboxStatus.PROCESSED):
            raise ValueError("processed_at must be set exactly when status is PROCESSED")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_FIELDS and hasattr(self, name):
            raise AttributeError(f"OutboxRecord.{name} is immutable")
        object.__setattr__(self, name, value)

    @property
    def is_pending(self) -> bool:
        return self.status == OutboxStatus.PENDING

    def mark_processed(self, now: datetime) -> None:
        if self.status != OutboxStatus.PENDING:
            raise InvalidStateTransition(
                f"Only pending records can be processed (record {self.id} is {self.status.name})"
            )
        self.status = OutboxStatus.PROCESSED
        self.processed_at = now
        self.last_error = None
        self.last_attempt_at = now

    def mark_failed(self, error: str, now: datetime) -> None:
        if self.status == OutboxStatus.PROCESSED:
            raise InvalidStateTransition(f"Outbox record {self.id} is already processed")
        self.status = OutboxStatus.FAILED
        self.last_error = error[:MAX_ERROR_LENGTH]
        self.retry_count += 1
        self.last_attempt_at = now

    def reset_for_retry(self, *, reset_attempts: bool = False) -> None:
        """Return a failed record to the pending pool.

        ``reset_attempts`` is the only way ``retry_count`` ever goes down.
        """
        if self.status != OutboxStatus.FAILED:
            raise InvalidStateTransition(
                f"Only failed records can be retried (record {self.id} is {self.status.name})"
            )
        self.status = OutboxStatus.PENDING
        self.last_error = None
        if reset_attempts:
            self.retry_count = 0
        self.release_claim()

    def claim(self, worker_id: WorkerId, until: datetime) -> None:
        self.claimed_by = worker_id
        self.claimed_until = until

    def release_claim(self) -> None:
        self.claimed_by = None
        self.claimed_until = None

    def is_claimed(self, now: datetime) -> bool:
        return self.claimed_until is not None and self.claimed_until > now
