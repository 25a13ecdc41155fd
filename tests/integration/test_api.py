"""REST API smoke tests against the in-memory outbox store (dependency overrides)."""
from __future__ import annotations

import uuid
from datetime import timedelta

import jwt
import pytest
from fastapi.testclient import TestClient

from outbox_service.api.deps import get_clock, get_dispatcher, get_retry_policy, get_store
from outbox_service.app import create_app
from outbox_service.application.policies.retry import RetryPolicy
from outbox_service.config import settings
from outbox_service.domain.value_objects.enums import OutboxStatus
from outbox_service.services.outbox_dispatcher import OutboxDispatcher
from tests.conftest import T0, TENANT_A, TENANT_B, FakeOutboxStore, FixedClock, make_record


def _make_token(sub: str = "ops-1", roles: list | None = None) -> str:
    return jwt.encode(
        {"sub": sub, "roles": ["admin"] if roles is None else roles},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def _auth(roles: list | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {_make_token(roles=roles)}"}


@pytest.fixture
def api_store() -> FakeOutboxStore:
    return FakeOutboxStore()


@pytest.fixture
def client(api_store, event_types, handlers):
    app = create_app()
    clock = FixedClock(T0 + timedelta(minutes=10))
    dispatcher = OutboxDispatcher(api_store, event_types, handlers, clock=clock)

    app.dependency_overrides[get_store] = lambda: api_store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_retry_policy] = lambda: RetryPolicy()
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app, raise_server_exceptions=False)


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_requires_token(client):
    resp = client.get("/api/v1/outbox/stats")
    assert resp.status_code in (401, 403)


def test_rejects_invalid_token(client):
    resp = client.get("/api/v1/outbox/stats", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_requires_admin_role(client):
    resp = client.get("/api/v1/outbox/stats", headers=_auth(roles=[]))
    assert resp.status_code == 403


def test_stats(client, api_store):
    api_store.records.update(
        {r.id: r for r in [make_record(), make_record(status=OutboxStatus.FAILED, retry_count=1)]}
    )

    resp = client.get("/api/v1/outbox/stats", headers=_auth())

    assert resp.status_code == 200
    assert resp.json() == {"pending": 1, "processed": 0, "failed": 1}


def test_list_records_by_status(client, api_store):
    failed = make_record(status=OutboxStatus.FAILED, retry_count=1, last_error="boom")
    api_store.records[failed.id] = failed
    pending = make_record()
    api_store.records[pending.id] = pending

    resp = client.get("/api/v1/outbox/records", params={"status": "failed"}, headers=_auth())

    assert resp.status_code == 200
    body = resp.json()
    assert [r["id"] for r in body] == [str(failed.id)]
    assert body[0]["status"] == "failed"
    assert body[0]["last_error"] == "boom"


def test_list_records_rejects_unknown_status(client):
    resp = client.get("/api/v1/outbox/records", params={"status": "lost"}, headers=_auth())
    assert resp.status_code == 422


def test_get_record(client, api_store):
    record = make_record(tenant_id=TENANT_B)
    api_store.records[record.id] = record

    resp = client.get(f"/api/v1/outbox/records/{record.id}", headers=_auth())

    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == str(TENANT_B)
    assert resp.json()["status"] == "pending"


def test_get_record_not_found(client):
    resp = client.get(f"/api/v1/outbox/records/{uuid.uuid4()}", headers=_auth())
    assert resp.status_code == 404


def test_retry_record(client, api_store):
    record = make_record(status=OutboxStatus.FAILED, retry_count=3, last_error="boom")
    api_store.records[record.id] = record

    resp = client.post(
        f"/api/v1/outbox/records/{record.id}/retry",
        params={"reset_attempts": "true"},
        headers=_auth(),
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"
    assert resp.json()["retry_count"] == 0
    assert api_store.records[record.id].is_pending


def test_retry_processed_record_conflicts(client, api_store):
    record = make_record(status=OutboxStatus.PROCESSED)
    api_store.records[record.id] = record

    resp = client.post(f"/api/v1/outbox/records/{record.id}/retry", headers=_auth())

    assert resp.status_code == 409


def test_dispatch_now(client, api_store):
    record = make_record(tenant_id=TENANT_A)
    api_store.records[record.id] = record
    unknown = make_record(event_type="Unknown.Bogus.Type", tenant_id=TENANT_A)
    api_store.records[unknown.id] = unknown

    resp = client.post("/api/v1/outbox/dispatch", params={"tenant_id": str(TENANT_A)}, headers=_auth())

    assert resp.status_code == 200
    body = resp.json()
    assert body["tenant_id"] == str(TENANT_A)
    assert (body["fetched"], body["processed"], body["failed"]) == (2, 1, 1)
    assert body["cancelled"] is False
    assert api_store.records[unknown.id].status == OutboxStatus.FAILED


def test_requeue(client, api_store):
    ready = make_record(status=OutboxStatus.FAILED, retry_count=1, last_attempt_at=T0)
    exhausted = make_record(status=OutboxStatus.FAILED, retry_count=3, last_attempt_at=T0)
    api_store.records.update({ready.id: ready, exhausted.id: exhausted})

    resp = client.post("/api/v1/outbox/requeue", json={}, headers=_auth())

    assert resp.status_code == 200
    assert resp.json() == {"requeued": 1, "record_ids": [str(ready.id)]}

    resp = client.post("/api/v1/outbox/requeue", json={"force": True}, headers=_auth())
    assert resp.json()["record_ids"] == [str(exhausted.id)]


def test_cleanup(client, api_store):
    old = make_record(status=OutboxStatus.PROCESSED, processed_at=T0 - timedelta(days=2))
    api_store.records[old.id] = old

    resp = client.post("/api/v1/outbox/cleanup", json={"older_than_days": 1}, headers=_auth())

    assert resp.status_code == 200
    assert resp.json() == {"deleted": 1}
    assert api_store.records == {}


def test_correlation_id_echoed(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "req-123"})
    assert resp.headers.get("X-Request-ID") == "req-123"
