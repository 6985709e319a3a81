"""Domain-specific exceptions. Pure domain layer; no infrastructure."""

from typing import Any, Optional


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Raised when domain validation rules are violated."""


class ResourceNotFoundError(DomainError):
    """Raised when the targeted delivery or payment does not exist."""

    def __init__(self, kind: str, resource_id: str) -> None:
        self.kind = kind
        self.resource_id = resource_id
        super().__init__(f"{kind} {resource_id} not found")


class InvalidTransitionError(DomainError):
    """Raised when no edge exists from the current state to the requested state."""

    def __init__(self, kind: str, current: str, target: str) -> None:
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"Invalid {kind} transition from {current} to {target}")


class UnauthorizedTransitionError(DomainError):
    """Raised when the edge exists but the acting role is not listed on it."""

    def __init__(self, kind: str, current: str, target: str, role: str) -> None:
        self.kind = kind
        self.current = current
        self.target = target
        self.role = role
        super().__init__(
            f"Role {role} may not move {kind} from {current} to {target}"
        )


class AmountMismatchError(DomainError):
    """Raised when a payment amount disagrees with the authoritative delivery total."""

    def __init__(self, expected: Any, provided: Any) -> None:
        self.expected = expected
        self.provided = provided
        super().__init__(f"Payment amount {provided} does not match total {expected}")


class PaymentPreconditionError(DomainError):
    """Raised when a payment cannot be created for the delivery in its current condition."""

    def __init__(self, message: str, reason: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message)
