"""Transition tables for deliveries and payments: state -> {target -> allowed roles}."""

from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Tuple, Type

from delivery_guard.domain.models.resource import (
    DeliveryState,
    PaymentState,
    ResourceKind,
    Role,
)

_EdgeTable = Mapping[Enum, Mapping[Enum, FrozenSet[Role]]]

DELIVERY_TRANSITIONS: _EdgeTable = {
    DeliveryState.PENDING: {
        DeliveryState.ACCEPTED: frozenset({Role.COURIER, Role.ADMIN}),
        DeliveryState.CANCELLED: frozenset({Role.CUSTOMER, Role.ADMIN}),
    },
    DeliveryState.ACCEPTED: {
        DeliveryState.PICKED_UP: frozenset({Role.COURIER, Role.ADMIN}),
        DeliveryState.CANCELLED: frozenset({Role.COURIER, Role.CUSTOMER, Role.ADMIN}),
    },
    DeliveryState.PICKED_UP: {
        DeliveryState.IN_TRANSIT: frozenset({Role.COURIER, Role.ADMIN}),
    },
    DeliveryState.IN_TRANSIT: {
        DeliveryState.DELIVERED: frozenset({Role.COURIER, Role.ADMIN}),
    },
    DeliveryState.DELIVERED: {},
    DeliveryState.CANCELLED: {},
}

PAYMENT_TRANSITIONS: _EdgeTable = {
    PaymentState.PENDING: {
        PaymentState.PROCESSING: frozenset({Role.CUSTOMER, Role.SYSTEM, Role.ADMIN}),
        PaymentState.FAILED: frozenset({Role.SYSTEM, Role.ADMIN}),
    },
    PaymentState.PROCESSING: {
        PaymentState.COMPLETED: frozenset({Role.SYSTEM, Role.ADMIN}),
        PaymentState.FAILED: frozenset({Role.SYSTEM, Role.ADMIN}),
    },
    PaymentState.COMPLETED: {
        PaymentState.REFUNDED: frozenset({Role.ADMIN}),
        PaymentState.DISPUTED: frozenset({Role.CUSTOMER, Role.ADMIN}),
    },
    PaymentState.FAILED: {
        PaymentState.PENDING: frozenset({Role.CUSTOMER, Role.ADMIN}),
    },
    PaymentState.DISPUTED: {
        PaymentState.COMPLETED: frozenset({Role.ADMIN}),
        PaymentState.REFUNDED: frozenset({Role.ADMIN}),
    },
    PaymentState.REFUNDED: {},
}

_STATE_ENUMS: Dict[ResourceKind, Type[Enum]] = {
    ResourceKind.DELIVERY: DeliveryState,
    ResourceKind.PAYMENT: PaymentState,
}

_TABLES: Dict[ResourceKind, _EdgeTable] = {
    ResourceKind.DELIVERY: DELIVERY_TRANSITIONS,
    ResourceKind.PAYMENT: PAYMENT_TRANSITIONS,
}

# Entering one of these states settles money and triggers the amount check.
AMOUNT_CHECKED_STATES: FrozenSet[Tuple[ResourceKind, Enum]] = frozenset(
    {(ResourceKind.PAYMENT, PaymentState.COMPLETED)}
)


def _flatten() -> Dict[Tuple[ResourceKind, Enum, Enum], FrozenSet[Role]]:
    flat: Dict[Tuple[ResourceKind, Enum, Enum], FrozenSet[Role]] = {}
    for kind, table in _TABLES.items():
        for source, edges in table.items():
            for target, roles in edges.items():
                flat[(kind, source, target)] = roles
    return flat


def _check_exhaustive() -> None:
    """Every kind has a table and every state of that kind appears as a source."""
    for kind in ResourceKind:
        if kind not in _TABLES or kind not in _STATE_ENUMS:
            raise RuntimeError(f"No transition table for {kind.value}")
        states = set(_STATE_ENUMS[kind])
        table = _TABLES[kind]
        missing = states - set(table)
        if missing:
            raise RuntimeError(
                f"{kind.value} table is missing source states: {sorted(s.value for s in missing)}"
            )
        for source, edges in table.items():
            for target, roles in edges.items():
                if target not in states or not roles:
                    raise RuntimeError(f"Malformed {kind.value} edge {source.value} -> {target}")


_check_exhaustive()

TRANSITION_TABLE: Mapping[Tuple[ResourceKind, Enum, Enum], FrozenSet[Role]] = _flatten()


def state_enum(kind: ResourceKind) -> Type[Enum]:
    return _STATE_ENUMS[kind]


def parse_state(kind: ResourceKind, raw: str) -> Optional[Enum]:
    """Resolve a raw state name for the kind. Returns None for names outside the enum."""
    try:
        return _STATE_ENUMS[kind](raw)
    except ValueError:
        return None


def allowed_roles(kind: ResourceKind, current: Enum, target: Enum) -> Optional[FrozenSet[Role]]:
    """Roles permitted on the edge, or None when the edge does not exist."""
    return TRANSITION_TABLE.get((kind, current, target))


def targets_from(kind: ResourceKind, current: Enum) -> FrozenSet[Enum]:
    return frozenset(_TABLES[kind].get(current, {}))


def is_terminal(kind: ResourceKind, state: Enum) -> bool:
    return not _TABLES[kind].get(state)


def requires_amount_check(kind: ResourceKind, target: Enum) -> bool:
    return (kind, target) in AMOUNT_CHECKED_STATES
