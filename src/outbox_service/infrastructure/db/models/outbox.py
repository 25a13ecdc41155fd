from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Index, Integer, SmallInteger, String, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from outbox_service.infrastructure.db.base import Base


class OutboxMessageModel(Base):
    __tablename__ = "outbox_messages"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    event_type: Mapped[str] = mapped_column("type", String(512), nullable=False)
    payload: Mapped[str] = mapped_column("data", Text, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(
        "occurred_on",
        TIMESTAMP(timezone=True),
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        "processed_on",
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    # 0=pending, 1=processed, 2=failed
    status: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    last_error: Mapped[str | None] = mapped_column("error", String(2048), nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    last_attempt_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    claimed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    claimed_until: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_outbox_messages_tenant_status_occurred", "tenant_id", "status", "occurred_on"),
        Index("ix_outbox_messages_status", "status"),
        Index("ix_outbox_messages_occurred_on", "occurred_on"),
    )
