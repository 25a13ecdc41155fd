from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from outbox_service.domain.value_objects.enums import OutboxStatus

StatusName = Literal["pending", "processed", "failed"]


def status_from_name(name: StatusName) -> OutboxStatus:
    return OutboxStatus[name.upper()]


class OutboxRecordResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    event_type: str
    payload: str
    occurred_at: datetime
    processed_at: datetime | None
    status: StatusName
    last_error: str | None
    retry_count: int
    last_attempt_at: datetime | None
    claimed_by: str | None
    claimed_until: datetime | None

    @field_validator("status", mode="before")
    @classmethod
    def _status_name(cls, value: Any) -> Any:
        if isinstance(value, OutboxStatus):
            return value.name.lower()
        return value


class OutboxStatsResponse(BaseModel):
    pending: int = 0
    processed: int = 0
    failed: int = 0


class DispatchResponse(BaseModel):
    tenant_id: UUID | None
    fetched: int
    processed: int
    failed: int
    exhausted: list[UUID]
    cancelled: bool


class RequeueRequest(BaseModel):
    tenant_id: UUID | None = None
    force: bool = False
    limit: int = Field(100, ge=1, le=1000)


class RequeueResponse(BaseModel):
    requeued: int
    record_ids: list[UUID]


class CleanupRequest(BaseModel):
    older_than_days: int | None = Field(None, ge=0)


class CleanupResponse(BaseModel):
    deleted: int
