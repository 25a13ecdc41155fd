"""Import all models so metadata.create_all can discover them via Base.metadata."""
from outbox_service.infrastructure.db.models.outbox import OutboxMessageModel

__all__ = [
    "OutboxMessageModel",
]
