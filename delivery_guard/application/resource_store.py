"""Resource store protocol. Application layer depends on this; infrastructure implements it."""

from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol

from delivery_guard.domain.models.resource import Payment, Resource, ResourceKind


class CommitResult(str, Enum):
    COMMITTED = "committed"
    CONFLICT = "conflict"


class ResourceStore(Protocol):
    """Persistent store for deliveries and payments. The store is the serialization point."""

    async def get(self, kind: ResourceKind, resource_id: str) -> Optional[Resource]:
        """Return the resource or None if it does not exist."""
        ...

    async def compare_and_set(
        self,
        kind: ResourceKind,
        resource_id: str,
        expected_state: Enum,
        new_fields: Mapping[str, Any],
    ) -> CommitResult:
        """
        Apply new_fields only if the stored state still equals expected_state.
        Returns CONFLICT otherwise (including a vanished resource).
        """
        ...

    async def insert_payment(self, payment: Payment) -> Payment:
        """Persist a new payment. Returns the stored record."""
        ...

    async def list_payments_for_delivery(self, delivery_id: str) -> List[Payment]:
        ...
