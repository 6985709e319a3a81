# Application layer: services that orchestrate domain, security and store.
# Services are imported from their own modules.

from delivery_guard.application.exceptions import (
    ApplicationError,
    StoreUnavailableError,
    TransitionConflictError,
)
from delivery_guard.application.resource_store import CommitResult, ResourceStore

__all__ = [
    "ApplicationError",
    "CommitResult",
    "ResourceStore",
    "StoreUnavailableError",
    "TransitionConflictError",
]
