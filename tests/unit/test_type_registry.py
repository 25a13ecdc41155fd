from __future__ import annotations

import json
import uuid
from dataclasses import dataclass

import pytest

from outbox_service.application.events.type_registry import EventTypeRegistry, default_type_name
from outbox_service.application.exceptions import EventDeserializationError, EventResolutionError
from outbox_service.domain.events.integration_event import IntegrationEvent
from tests.conftest import TENANT_A
from tests.sample_events import (
    AccountCreated,
    BillingAccountCreated,
    CouponRedeemed,
    OrderCreated,
    OrderShipped,
)


def test_default_name_is_module_qualified():
    assert default_type_name(OrderCreated) == "tests.sample_events.OrderCreated"


def test_resolve_exact_name(event_types):
    assert event_types.resolve("tests.sample_events.OrderCreated") is OrderCreated


def test_resolve_alias():
    registry = EventTypeRegistry()
    registry.register(OrderCreated, aliases=("Sales.Contracts.OrderCreated",))
    assert registry.resolve("Sales.Contracts.OrderCreated") is OrderCreated


def test_resolve_strips_qualifier(event_types):
    stored = "tests.sample_events.OrderShipped, Shipping.Contracts, Version=1.0.0.0"
    assert event_types.resolve(stored) is OrderShipped


def test_resolve_bare_name(event_types):
    assert event_types.resolve("OrderCreated") is OrderCreated


def test_resolve_bare_name_from_foreign_namespace(event_types):
    assert event_types.resolve("Legacy.Sales.OrderCreated, Legacy.Sales") is OrderCreated


def test_resolve_ambiguous_bare_name(event_types):
    with pytest.raises(EventResolutionError) as exc_info:
        event_types.resolve("Legacy.AccountCreated")

    assert "ambiguous" in exc_info.value.detail
    assert "billing.AccountCreated" in exc_info.value.detail
    assert "identity.AccountCreated" in exc_info.value.detail


def test_ambiguity_settled_by_full_name(event_types):
    stored = "tests.sample_events.AccountCreated, Identity.Contracts"
    assert event_types.resolve(stored) is AccountCreated
    assert event_types.resolve("billing.AccountCreated, Billing") is BillingAccountCreated


def test_resolve_unknown(event_types):
    with pytest.raises(EventResolutionError) as exc_info:
        event_types.resolve("Unknown.Bogus.Type")
    assert exc_info.value.event_type == "Unknown.Bogus.Type"
    assert "Could not resolve" in exc_info.value.detail


def test_resolve_is_stable(event_types):
    first = event_types.resolve("OrderCreated")
    assert all(event_types.resolve("OrderCreated") is first for _ in range(5))


def test_register_rejects_non_events():
    @dataclass(frozen=True)
    class NotAnEvent:
        value: int

    with pytest.raises(TypeError):
        EventTypeRegistry().register(NotAnEvent)


def test_register_rejects_name_conflict():
    registry = EventTypeRegistry()
    registry.register(OrderCreated, name="orders.Created")
    with pytest.raises(ValueError):
        registry.register(OrderShipped, name="orders.Created")


def test_register_rejects_alias_conflict():
    registry = EventTypeRegistry()
    registry.register(OrderCreated, aliases=("Orders.Event",))
    with pytest.raises(ValueError):
        registry.register(OrderShipped, aliases=("Orders.Event",))


def test_register_same_class_twice_is_idempotent():
    registry = EventTypeRegistry()
    registry.register(OrderCreated)
    registry.register(OrderCreated)
    assert len(registry) == 1
    assert OrderCreated in registry


def test_register_same_class_under_new_name_rejected():
    registry = EventTypeRegistry()
    registry.register(OrderCreated)
    with pytest.raises(ValueError):
        registry.register(OrderCreated, name="orders.Created")


def test_event_decorator():
    registry = EventTypeRegistry()

    @registry.event(name="inventory.StockReserved")
    @dataclass(frozen=True, slots=True)
    class StockReserved(IntegrationEvent):
        sku: str

    assert registry.resolve("StockReserved") is StockReserved
    assert registry.name_for(StockReserved) == "inventory.StockReserved"


def test_name_for_unregistered():
    with pytest.raises(EventResolutionError):
        EventTypeRegistry().name_for(OrderCreated)


def test_serialize_then_deserialize(event_types):
    event = OrderCreated(tenant_id=TENANT_A, order_id=uuid.uuid4(), amount=42)

    name, payload = event_types.serialize(event)
    restored = event_types.deserialize(event_types.resolve(name), payload)

    assert name == "tests.sample_events.OrderCreated"
    assert json.loads(payload)["amount"] == 42
    assert restored == event


def test_deserialize_fills_base_defaults(event_types):
    payload = json.dumps({"tenant_id": str(TENANT_A), "order_id": str(uuid.uuid4()), "amount": 1})
    event = event_types.deserialize(OrderCreated, payload)
    assert event.tenant_id == TENANT_A
    assert event.id is not None


def test_deserialize_missing_field(event_types):
    payload = json.dumps({"tenant_id": str(TENANT_A), "amount": 1})
    with pytest.raises(EventDeserializationError) as exc_info:
        event_types.deserialize(OrderCreated, payload)
    assert "order_id" in exc_info.value.detail


def test_deserialize_malformed_json(event_types):
    with pytest.raises(EventDeserializationError):
        event_types.deserialize(OrderCreated, "{not json")


def test_deserialize_wraps_errors_raised_by_event_shape():
    registry = EventTypeRegistry()
    registry.register(CouponRedeemed)
    payload = json.dumps({"tenant_id": str(TENANT_A), "code": "EXPIRED"})

    with pytest.raises(EventDeserializationError) as exc_info:
        registry.deserialize(CouponRedeemed, payload)

    assert "KeyError" in exc_info.value.detail
    assert registry.deserialize(CouponRedeemed, payload.replace("EXPIRED", "VIP25")).code == "VIP25"
