"""Payment service tests: preconditions for creating one payment per delivered delivery."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from delivery_guard.application.exceptions import StoreUnavailableError
from delivery_guard.application.payment_service import PaymentService
from delivery_guard.domain.exceptions import (
    AmountMismatchError,
    PaymentPreconditionError,
    ResourceNotFoundError,
)
from delivery_guard.domain.models.resource import PaymentState, ResourceKind, Role
from delivery_guard.domain.schemas.transition import PaymentCreateRequest
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.security.actor import Actor
from delivery_guard.security.exceptions import ForbiddenError

CUSTOMER = Actor("C1", Role.CUSTOMER)


@pytest.fixture
def service(store, audit_logger, metrics):
    return PaymentService(store, audit_logger, metrics)


def _request(delivery_id="D4", amount="120.00"):
    return PaymentCreateRequest(delivery_id=delivery_id, amount=Decimal(amount), method="upi")


async def test_creates_pending_payment(service, store, audit_logger, audit_repository, metrics):
    payment = await service.create_payment(CUSTOMER, _request(), correlation_id="c-1")
    assert payment.state is PaymentState.PENDING
    assert payment.customer_id == "C1"
    assert payment.courier_id == "K1"
    assert payment.amount == Decimal("120.00")
    assert await store.get(ResourceKind.PAYMENT, payment.resource_id) == payment

    await audit_logger.drain()
    [record] = audit_repository.records
    assert record.action == "payment_created"
    assert record.resource_id == payment.resource_id
    assert metrics.counter("payments_created") == 1


async def test_amount_within_one_paisa_accepted(service):
    payment = await service.create_payment(CUSTOMER, _request(amount="119.99"))
    assert payment.amount == Decimal("119.99")


async def test_missing_delivery_is_not_found(service):
    with pytest.raises(ResourceNotFoundError):
        await service.create_payment(CUSTOMER, _request(delivery_id="D404"))


async def test_other_customer_is_forbidden(service, audit_logger, audit_repository):
    with pytest.raises(ForbiddenError):
        await service.create_payment(Actor("C2", Role.CUSTOMER), _request())
    await audit_logger.drain()
    [event] = audit_repository.security_events
    assert event.event_type is SecurityEventType.UNAUTHORIZED_PAYMENT
    assert event.severity is Severity.HIGH


async def test_undelivered_delivery_cannot_be_paid(service):
    with pytest.raises(PaymentPreconditionError) as exc_info:
        await service.create_payment(CUSTOMER, _request(delivery_id="D1"))
    assert exc_info.value.reason == "delivery_not_completed"


async def test_amount_mismatch_is_critical(service, store, audit_logger, audit_repository):
    with pytest.raises(AmountMismatchError):
        await service.create_payment(CUSTOMER, _request(amount="100.00"))
    assert await store.list_payments_for_delivery("D4") == []
    await audit_logger.drain()
    [event] = audit_repository.security_events
    assert event.event_type is SecurityEventType.PAYMENT_AMOUNT_MISMATCH
    assert event.severity is Severity.CRITICAL


async def test_live_payment_blocks_second_payment(service, audit_logger, audit_repository):
    with pytest.raises(PaymentPreconditionError) as exc_info:
        await service.create_payment(CUSTOMER, _request(delivery_id="D3", amount="523.41"))
    assert exc_info.value.reason == "duplicate_payment"
    await audit_logger.drain()
    assert audit_repository.security_events[0].event_type is SecurityEventType.DUPLICATE_PAYMENT_ATTEMPT


async def test_pending_payment_does_not_block(service):
    await service.create_payment(CUSTOMER, _request())
    second = await service.create_payment(CUSTOMER, _request())
    assert second.state is PaymentState.PENDING


async def test_insert_failure_is_unavailable(service, store, audit_logger, audit_repository):
    store.insert_payment = AsyncMock(side_effect=ConnectionError("db down"))
    with pytest.raises(StoreUnavailableError):
        await service.create_payment(CUSTOMER, _request())
    await audit_logger.drain()
    assert audit_repository.records == []


async def test_admin_may_pay_on_behalf_of_customer(service):
    payment = await service.create_payment(Actor("ops-1", Role.ADMIN), _request())
    assert payment.customer_id == "C1"
