"""Security-layer exceptions. Typed, no HTTP."""

from typing import Optional


class SecurityError(Exception):
    """Base for all security-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationRequiredError(SecurityError):
    """Raised when a request carries no verified actor identity."""


class AuthorizationError(SecurityError):
    """Raised when role does not have permission for the action."""


class ForbiddenError(AuthorizationError):
    """Raised when the actor is not entitled to touch the specific resource instance."""


class HeaderRequiredError(SecurityError):
    """Raised when a required request header is missing or blank."""

    def __init__(self, header: str, message: Optional[str] = None) -> None:
        self.header = header
        super().__init__(message or f"{header} header is required")


class IdempotencyKeyRequiredError(HeaderRequiredError):
    """Raised when a money-moving request lacks an Idempotency-Key."""

    def __init__(self, header: str = "Idempotency-Key") -> None:
        super().__init__(header)


class ReplayRejectedError(SecurityError):
    """Base for replay-guard rejections."""


class ReplayStaleError(ReplayRejectedError):
    """Raised when the client timestamp is outside the replay window (stale or future-skewed)."""


class NonceReusedError(ReplayRejectedError):
    """Raised when a single-use nonce was already consumed within the window."""


class DuplicateRequestError(ReplayRejectedError):
    """Raised when an identical request signature was seen within the window."""


class RiskBlockedError(SecurityError):
    """Raised when the actor's risk tier is CRITICAL."""


class RateLimitExceededError(SecurityError):
    """Raised when the actor exceeded the request budget for the endpoint."""
