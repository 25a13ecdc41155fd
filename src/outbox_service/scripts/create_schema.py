"""One-time script: create the outbox table and its indexes."""
from __future__ import annotations

import asyncio
import logging

from outbox_service.infrastructure.db.base import Base
from outbox_service.infrastructure.db.models import OutboxMessageModel
from outbox_service.infrastructure.db.session import engine

logger = logging.getLogger(__name__)


async def create_schema() -> None:
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Ensured table '%s'", OutboxMessageModel.__tablename__)
    finally:
        await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_schema())


if __name__ == "__main__":
    main()
