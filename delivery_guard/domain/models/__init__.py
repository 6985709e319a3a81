"""Domain models. Pure business entities and transition tables."""

from delivery_guard.domain.models.resource import (
    Delivery,
    DeliveryState,
    Payment,
    PaymentState,
    Resource,
    ResourceKind,
    Role,
)
from delivery_guard.domain.models.transitions import (
    DELIVERY_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    TRANSITION_TABLE,
    allowed_roles,
    is_terminal,
    parse_state,
    requires_amount_check,
    state_enum,
    targets_from,
)

__all__ = [
    "DELIVERY_TRANSITIONS",
    "Delivery",
    "DeliveryState",
    "PAYMENT_TRANSITIONS",
    "Payment",
    "PaymentState",
    "Resource",
    "ResourceKind",
    "Role",
    "TRANSITION_TABLE",
    "allowed_roles",
    "is_terminal",
    "parse_state",
    "requires_amount_check",
    "state_enum",
    "targets_from",
]
