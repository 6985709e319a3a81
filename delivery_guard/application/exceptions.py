"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TransitionConflictError(ApplicationError):
    """Raised when the compare-and-set commit lost a race: state moved since it was read."""


class StoreUnavailableError(ApplicationError):
    """Raised when the store response is inconclusive. Never treated as success."""
