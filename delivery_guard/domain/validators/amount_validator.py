"""Amount consistency checks. Pure functions, no infrastructure."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from delivery_guard.domain.exceptions import AmountMismatchError, DomainValidationError

Amount = Union[Decimal, int, float, str]

# Rupees -> paise
MINOR_UNITS_PER_MAJOR = 100
DEFAULT_TOLERANCE_MINOR_UNITS = 1


def to_decimal(amount: Amount) -> Decimal:
    """Coerce to Decimal. Floats go through str() so 523.4 stays 523.4."""
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError) as e:
            raise DomainValidationError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise DomainValidationError(f"Invalid amount: {amount!r}")
    return value


def to_minor_units(amount: Amount) -> int:
    """Convert a major-unit amount to whole minor units, rounding half up."""
    scaled = to_decimal(amount) * MINOR_UNITS_PER_MAJOR
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def amounts_match(
    recorded: Amount,
    authoritative: Amount,
    tolerance_minor_units: int = DEFAULT_TOLERANCE_MINOR_UNITS,
) -> bool:
    return abs(to_minor_units(recorded) - to_minor_units(authoritative)) <= tolerance_minor_units


def validate_amount_consistency(
    recorded: Amount,
    authoritative: Amount,
    tolerance_minor_units: int = DEFAULT_TOLERANCE_MINOR_UNITS,
) -> None:
    """Raises AmountMismatchError unless recorded equals authoritative within tolerance."""
    if not amounts_match(recorded, authoritative, tolerance_minor_units):
        raise AmountMismatchError(expected=str(authoritative), provided=str(recorded))


def validate_positive_amount(amount: Amount) -> Decimal:
    value = to_decimal(amount)
    if value <= 0:
        raise DomainValidationError("amount must be positive")
    return value
