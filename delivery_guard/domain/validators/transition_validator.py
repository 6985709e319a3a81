"""Edge resolution for the transition tables. Pure functions, no I/O."""

from enum import Enum
from typing import FrozenSet

from delivery_guard.domain.exceptions import (
    InvalidTransitionError,
    UnauthorizedTransitionError,
)
from delivery_guard.domain.models.resource import ResourceKind, Role
from delivery_guard.domain.models.transitions import allowed_roles, parse_state


def resolve_target(kind: ResourceKind, current: Enum, raw_target: str) -> Enum:
    """Parse the requested state. An unknown state name has no edge, so it is an invalid transition."""
    target = parse_state(kind, raw_target)
    if target is None:
        raise InvalidTransitionError(kind.value, current.value, raw_target)
    return target


def validate_edge(kind: ResourceKind, current: Enum, target: Enum, role: Role) -> FrozenSet[Role]:
    """
    Check the (kind, current, target) edge for role.
    Missing edge -> InvalidTransitionError (regardless of role, terminal states included).
    Edge present, role not listed -> UnauthorizedTransitionError.
    """
    roles = allowed_roles(kind, current, target)
    if roles is None:
        raise InvalidTransitionError(kind.value, current.value, target.value)
    if role not in roles:
        raise UnauthorizedTransitionError(kind.value, current.value, target.value, role.value)
    return roles
