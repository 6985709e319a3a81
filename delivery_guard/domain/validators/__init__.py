"""Domain validators. Pure functions."""

from delivery_guard.domain.validators.amount_validator import (
    amounts_match,
    to_minor_units,
    validate_amount_consistency,
    validate_positive_amount,
)
from delivery_guard.domain.validators.transition_validator import (
    resolve_target,
    validate_edge,
)

__all__ = [
    "amounts_match",
    "resolve_target",
    "to_minor_units",
    "validate_amount_consistency",
    "validate_edge",
    "validate_positive_amount",
]
