from __future__ import annotations

from datetime import timedelta
from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    OUTBOX_POLL_INTERVAL: float = 30.0
    OUTBOX_BATCH_SIZE: int = 100
    OUTBOX_MAX_ATTEMPTS: int = 3
    OUTBOX_ESCALATION_THRESHOLD: int = 3
    OUTBOX_RETRY_BASE_DELAY: float = 5.0
    OUTBOX_RETRY_MAX_DELAY: float = 300.0
    OUTBOX_CLAIM_LEASE_SECONDS: int = 300
    OUTBOX_HANDLER_FAILURE_MODE: Literal["stop_on_first", "invoke_all"] = "stop_on_first"

    OUTBOX_PER_TENANT: bool = False
    OUTBOX_TENANT_CONCURRENCY: int = 4

    OUTBOX_RETENTION_DAYS: int = 7
    OUTBOX_CLEANUP_INTERVAL: float = 3600.0
    OUTBOX_AUTO_REQUEUE: bool = False

    OUTBOX_EVENT_MODULES: list[str] = []
    OUTBOX_ALERTS_CHANNEL: str = "outbox.alerts"
    OUTBOX_RUN_IN_APP: bool = False

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def claim_lease(self) -> timedelta | None:
        if self.OUTBOX_CLAIM_LEASE_SECONDS <= 0:
            return None
        return timedelta(seconds=self.OUTBOX_CLAIM_LEASE_SECONDS)

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.OUTBOX_RETENTION_DAYS)

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
