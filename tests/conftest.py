"""Shared fixtures: fake clock, in-memory audit sink, metrics, seeded store."""

from decimal import Decimal

import pytest

from delivery_guard.domain.models.resource import (
    Delivery,
    DeliveryState,
    Payment,
    PaymentState,
)
from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.infrastructure.memory.audit_repository import InMemoryAuditRepository
from delivery_guard.infrastructure.memory.resource_store import InMemoryResourceStore
from delivery_guard.observability.metrics import MetricsCollector


class FakeClock:
    """Callable clock for window and decay tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit_repository():
    return InMemoryAuditRepository()


@pytest.fixture
def audit_logger(audit_repository):
    return AuditLogger(repository=audit_repository)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def deliveries():
    """D1 pending for C1; D2 accepted by K1; D3 delivered (fare 523.41); D4 delivered, unpaid."""
    return {
        "D1": Delivery(resource_id="D1", state=DeliveryState.PENDING, customer_id="C1"),
        "D2": Delivery(
            resource_id="D2",
            state=DeliveryState.ACCEPTED,
            customer_id="C1",
            courier_id="K1",
            business_id="B1",
        ),
        "D3": Delivery(
            resource_id="D3",
            state=DeliveryState.DELIVERED,
            customer_id="C1",
            courier_id="K1",
            total_fare=Decimal("523.41"),
        ),
        "D4": Delivery(
            resource_id="D4",
            state=DeliveryState.DELIVERED,
            customer_id="C1",
            courier_id="K1",
            total_fare=Decimal("120.00"),
        ),
    }


@pytest.fixture
def payments():
    """P1 processing for D3 at 523.40; P2 processing for D3 at 550.00."""
    return {
        "P1": Payment(
            resource_id="P1",
            state=PaymentState.PROCESSING,
            delivery_id="D3",
            customer_id="C1",
            amount=Decimal("523.40"),
            courier_id="K1",
        ),
        "P2": Payment(
            resource_id="P2",
            state=PaymentState.PROCESSING,
            delivery_id="D3",
            customer_id="C1",
            amount=Decimal("550.00"),
            courier_id="K1",
        ),
    }


@pytest.fixture
def store(deliveries, payments):
    return InMemoryResourceStore([*deliveries.values(), *payments.values()])
