from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(slots=True)
class DispatchReport:
    """Outcome of one ``process_pending`` call."""

    tenant_id: UUID | None = None
    fetched: int = 0
    processed: int = 0
    failed: int = 0
    exhausted: list[UUID] = field(default_factory=list)
    cancelled: bool = False

    @property
    def skipped(self) -> int:
        return self.fetched - self.processed - self.failed
