"""In-memory resource store. Single process; compare-and-set serialized by one asyncio lock."""

import asyncio
import dataclasses
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from delivery_guard.application.resource_store import CommitResult
from delivery_guard.domain.models.resource import Payment, Resource, ResourceKind


class InMemoryResourceStore:
    """Implements ResourceStore. Used for local runs and tests."""

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._items: Dict[Tuple[ResourceKind, str], Resource] = {}
        self._lock = asyncio.Lock()
        for resource in resources:
            self.add(resource)

    def add(self, resource: Resource) -> None:
        """Seed a resource created by the owning business workflow."""
        self._items[(resource.kind, resource.resource_id)] = resource

    async def get(self, kind: ResourceKind, resource_id: str) -> Optional[Resource]:
        return self._items.get((kind, resource_id))

    async def compare_and_set(
        self,
        kind: ResourceKind,
        resource_id: str,
        expected_state: Enum,
        new_fields: Mapping[str, Any],
    ) -> CommitResult:
        async with self._lock:
            current = self._items.get((kind, resource_id))
            if current is None or current.state != expected_state:
                return CommitResult.CONFLICT
            self._items[(kind, resource_id)] = dataclasses.replace(current, **dict(new_fields))
            return CommitResult.COMMITTED

    async def insert_payment(self, payment: Payment) -> Payment:
        async with self._lock:
            self._items[(payment.kind, payment.resource_id)] = payment
        return payment

    async def list_payments_for_delivery(self, delivery_id: str) -> List[Payment]:
        return [
            r
            for r in self._items.values()
            if isinstance(r, Payment) and r.delivery_id == delivery_id
        ]
