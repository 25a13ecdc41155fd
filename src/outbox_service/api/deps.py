"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from outbox_service.application.dto.principal import Principal
from outbox_service.application.policies.retry import RetryPolicy
from outbox_service.application.ports.auth import TokenVerifier
from outbox_service.application.ports.clock import Clock, SystemClock
from outbox_service.application.repositories.outbox import OutboxStore
from outbox_service.config import settings
from outbox_service.infrastructure.auth.hs256_verifier import HS256Verifier
from outbox_service.services.outbox_dispatcher import OutboxDispatcher

_bearer_scheme = HTTPBearer()


def get_store(request: Request) -> OutboxStore:
    return request.app.state.outbox_worker.store


def get_dispatcher(request: Request) -> OutboxDispatcher:
    return request.app.state.outbox_worker.dispatcher


def get_retry_policy(request: Request) -> RetryPolicy:
    return request.app.state.outbox_worker.retry_policy


def get_clock() -> Clock:
    return SystemClock()


StoreDep = Annotated[OutboxStore, Depends(get_store)]
DispatcherDep = Annotated[OutboxDispatcher, Depends(get_dispatcher)]
RetryPolicyDep = Annotated[RetryPolicy, Depends(get_retry_policy)]
ClockDep = Annotated[Clock, Depends(get_clock)]


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_admin(principal: CurrentPrincipal) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


CurrentAdmin = Annotated[Principal, Depends(get_current_admin)]
