from __future__ import annotations

from typing import Protocol

from outbox_service.application.repositories.outbox import OutboxWriter


class UnitOfWork(Protocol):
    """Transaction boundary shared by a domain write and its outbox records."""

    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
