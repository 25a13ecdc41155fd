from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True, kw_only=True)
class IntegrationEvent:
    """Base for every event that may cross the outbox boundary.

    Subclasses are plain frozen dataclasses; their own fields may be
    positional because the base fields are keyword-only.
    """

    tenant_id: UUID
    id: UUID = field(default_factory=uuid.uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)
