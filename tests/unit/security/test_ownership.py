"""Ownership gate tests: per-instance binding of actor to resource."""

from unittest.mock import AsyncMock

import pytest

from delivery_guard.application.exceptions import StoreUnavailableError
from delivery_guard.domain.exceptions import ResourceNotFoundError
from delivery_guard.domain.models.resource import ResourceKind, Role
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.security.actor import Actor
from delivery_guard.security.exceptions import ForbiddenError
from delivery_guard.security.ownership import OwnershipGate, is_owner


@pytest.fixture
def gate(store, audit_logger):
    return OwnershipGate(store, audit_logger)


async def test_customer_owns_own_delivery(gate):
    resource = await gate.authorize(Actor("C1", Role.CUSTOMER), ResourceKind.DELIVERY, "D1")
    assert resource.resource_id == "D1"


async def test_assigned_courier_owns_delivery(gate):
    resource = await gate.authorize(Actor("K1", Role.COURIER), ResourceKind.DELIVERY, "D2")
    assert resource.courier_id == "K1"


async def test_other_customer_is_forbidden(gate, audit_logger, audit_repository):
    with pytest.raises(ForbiddenError):
        await gate.authorize(
            Actor("C2", Role.CUSTOMER, ip_address="10.0.0.9"),
            ResourceKind.DELIVERY,
            "D1",
            correlation_id="corr-1",
        )
    await audit_logger.drain()
    [event] = audit_repository.security_events
    assert event.event_type is SecurityEventType.UNAUTHORIZED_ACCESS
    assert event.severity is Severity.HIGH
    assert event.actor_id == "C2"
    assert event.ip_address == "10.0.0.9"
    assert event.correlation_id == "corr-1"
    assert event.metadata["resource_id"] == "D1"


async def test_courier_is_not_matched_against_customer_field(gate):
    # K1 is not the customer of D1 and D1 has no courier yet.
    with pytest.raises(ForbiddenError):
        await gate.authorize(Actor("C1", Role.COURIER), ResourceKind.DELIVERY, "D1")


async def test_privileged_roles_bypass_ownership(gate):
    for role in (Role.ADMIN, Role.SYSTEM):
        resource = await gate.authorize(Actor("ops-1", role), ResourceKind.PAYMENT, "P1")
        assert resource.resource_id == "P1"


async def test_missing_resource_is_not_found(gate, audit_logger, audit_repository):
    with pytest.raises(ResourceNotFoundError):
        await gate.authorize(Actor("C1", Role.CUSTOMER), ResourceKind.DELIVERY, "nope")
    await audit_logger.drain()
    [event] = audit_repository.security_events
    assert event.event_type is SecurityEventType.RESOURCE_NOT_FOUND


async def test_store_error_is_unavailable(store, gate, audit_logger, audit_repository):
    store.get = AsyncMock(side_effect=TimeoutError("db slow"))
    with pytest.raises(StoreUnavailableError):
        await gate.authorize(Actor("C1", Role.CUSTOMER), ResourceKind.DELIVERY, "D1")
    await audit_logger.drain()
    assert audit_repository.security_events == []


def test_business_has_no_claim_on_payments(payments):
    assert not is_owner("B1", Role.BUSINESS, payments["P1"])
    assert is_owner("C1", Role.CUSTOMER, payments["P1"])
    assert is_owner("K1", Role.COURIER, payments["P1"])


async def test_ensure_owner_records_attempted_edge(gate, audit_logger, audit_repository, deliveries):
    with pytest.raises(ForbiddenError):
        await gate.ensure_owner(
            Actor("C9", Role.CUSTOMER), deliveries["D1"], attempted="PENDING->CANCELLED"
        )
    await audit_logger.drain()
    assert audit_repository.security_events[0].metadata["attempted"] == "PENDING->CANCELLED"
