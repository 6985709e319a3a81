"""Domain layer: models, transition tables, schemas, validators, exceptions. Pure business logic only."""

from delivery_guard.domain.exceptions import (
    AmountMismatchError,
    DomainError,
    DomainValidationError,
    InvalidTransitionError,
    PaymentPreconditionError,
    ResourceNotFoundError,
    UnauthorizedTransitionError,
)
from delivery_guard.domain.models import (
    Delivery,
    DeliveryState,
    Payment,
    PaymentState,
    Resource,
    ResourceKind,
    Role,
)

__all__ = [
    "AmountMismatchError",
    "Delivery",
    "DeliveryState",
    "DomainError",
    "DomainValidationError",
    "InvalidTransitionError",
    "Payment",
    "PaymentPreconditionError",
    "PaymentState",
    "Resource",
    "ResourceKind",
    "ResourceNotFoundError",
    "Role",
    "UnauthorizedTransitionError",
]
