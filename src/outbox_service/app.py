from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from outbox_service.api.middleware.correlation_id import CorrelationIdMiddleware
from outbox_service.api.middleware.metrics import RequestTimingMiddleware
from outbox_service.api.v1.routers import health, outbox
from outbox_service.application.exceptions import ConflictError, NotFoundError
from outbox_service.config import settings
from outbox_service.workers.outbox_worker import build_outbox_worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    app.state.outbox_worker = build_outbox_worker(settings, app.state.redis)
    stop = asyncio.Event()
    app.state.outbox_task = None
    if settings.OUTBOX_RUN_IN_APP:
        app.state.outbox_task = asyncio.create_task(
            app.state.outbox_worker.run(stop), name="outbox-worker",
        )

    yield

    stop.set()
    if app.state.outbox_task is not None:
        await app.state.outbox_task
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Outbox Dispatch Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(outbox.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})
