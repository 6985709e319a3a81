"""Domain model for transitionable resources. Pure business semantics; no ORM or infrastructure."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Dict, Optional, Union


class Role(str, Enum):
    """Closed set of caller roles. ADMIN and SYSTEM are privileged principals."""

    CUSTOMER = "customer"
    COURIER = "courier"
    BUSINESS = "business"
    ADMIN = "admin"
    SYSTEM = "system"


class ResourceKind(str, Enum):
    DELIVERY = "delivery"
    PAYMENT = "payment"


class DeliveryState(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentState(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    DISPUTED = "DISPUTED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Delivery:
    """
    A package delivery. State changes only through the transition validator;
    never deleted, only terminally stated (DELIVERED, CANCELLED).
    """

    kind: ClassVar[ResourceKind] = ResourceKind.DELIVERY

    resource_id: str
    state: DeliveryState
    customer_id: str
    courier_id: Optional[str] = None
    business_id: Optional[str] = None
    total_fare: Optional[Decimal] = None
    updated_at: datetime = field(default_factory=_utcnow)

    def owners(self) -> Dict[Role, Optional[str]]:
        """Owning-party reference per role."""
        return {
            Role.CUSTOMER: self.customer_id,
            Role.COURIER: self.courier_id,
            Role.BUSINESS: self.business_id,
        }


@dataclass(frozen=True)
class Payment:
    """A payment captured against a delivery. Terminal state: REFUNDED."""

    kind: ClassVar[ResourceKind] = ResourceKind.PAYMENT

    resource_id: str
    state: PaymentState
    delivery_id: str
    customer_id: str
    amount: Decimal
    courier_id: Optional[str] = None
    method: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def owners(self) -> Dict[Role, Optional[str]]:
        return {
            Role.CUSTOMER: self.customer_id,
            Role.COURIER: self.courier_id,
        }


Resource = Union[Delivery, Payment]
