"""Ownership/role gate: binds a caller to the specific resource instance it may touch. No FastAPI."""

import logging
from typing import Dict, Optional, Protocol

from delivery_guard.application.exceptions import StoreUnavailableError
from delivery_guard.domain.exceptions import ResourceNotFoundError
from delivery_guard.domain.models.resource import Resource, ResourceKind, Role
from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.security.actor import PRIVILEGED_ROLES, Actor
from delivery_guard.security.exceptions import ForbiddenError

logger = logging.getLogger(__name__)

# Which owning-party field a role is matched against, per kind. A courier is
# only ever matched against the assigned courier, never against the customer.
OWNERSHIP_FIELDS: Dict[ResourceKind, Dict[Role, str]] = {
    ResourceKind.DELIVERY: {
        Role.CUSTOMER: "customer_id",
        Role.COURIER: "courier_id",
        Role.BUSINESS: "business_id",
    },
    ResourceKind.PAYMENT: {
        Role.CUSTOMER: "customer_id",
        Role.COURIER: "courier_id",
    },
}


class ResourceReader(Protocol):
    async def get(self, kind: ResourceKind, resource_id: str) -> Optional[Resource]: ...


def is_owner(actor_id: str, role: Role, resource: Resource) -> bool:
    """True if role is privileged or actor_id matches the role's ownership field on resource."""
    if role in PRIVILEGED_ROLES:
        return True
    field_name = OWNERSHIP_FIELDS.get(resource.kind, {}).get(role)
    if field_name is None:
        return False
    owner = getattr(resource, field_name, None)
    return owner is not None and owner == actor_id


class OwnershipGate:
    """
    Resolve the resource and confirm the actor may touch it.
    Returns the resource on success; raises ResourceNotFoundError, ForbiddenError,
    or StoreUnavailableError when the store lookup fails.
    Forbidden emits an UNAUTHORIZED_ACCESS security event (high).
    """

    def __init__(self, store: ResourceReader, audit_logger: AuditLogger) -> None:
        self._store = store
        self._audit = audit_logger

    async def authorize(
        self,
        actor: Actor,
        kind: ResourceKind,
        resource_id: str,
        correlation_id: Optional[str] = None,
    ) -> Resource:
        try:
            resource = await self._store.get(kind, resource_id)
        except Exception as e:
            logger.error(
                "resource_load_failed",
                extra={"resource_id": resource_id, "resource_kind": kind.value, "error": str(e)},
            )
            raise StoreUnavailableError("Store did not return the resource") from e
        if resource is None:
            await self._audit.log_security_event(
                event_type=SecurityEventType.RESOURCE_NOT_FOUND,
                severity=Severity.LOW,
                description=f"Access attempt to missing {kind.value}",
                actor_id=actor.actor_id,
                correlation_id=correlation_id,
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
                metadata={"resource_kind": kind.value, "resource_id": resource_id},
            )
            raise ResourceNotFoundError(kind.value, resource_id)
        await self.ensure_owner(actor, resource, correlation_id=correlation_id)
        return resource

    async def ensure_owner(
        self,
        actor: Actor,
        resource: Resource,
        correlation_id: Optional[str] = None,
        attempted: Optional[str] = None,
    ) -> None:
        """Raise ForbiddenError (and emit the security event) unless actor owns resource."""
        if is_owner(actor.actor_id, actor.role, resource):
            return
        metadata = {
            "resource_kind": resource.kind.value,
            "resource_id": resource.resource_id,
            "role": actor.role.value,
        }
        if attempted:
            metadata["attempted"] = attempted
        logger.info(
            "ownership_denied",
            extra={"resource_id": resource.resource_id, "resource_kind": resource.kind.value},
        )
        await self._audit.log_security_event(
            event_type=SecurityEventType.UNAUTHORIZED_ACCESS,
            severity=Severity.HIGH,
            description=f"Unauthorized access attempt to {resource.kind.value}: {resource.resource_id}",
            actor_id=actor.actor_id,
            correlation_id=correlation_id,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
            metadata=metadata,
        )
        raise ForbiddenError("Access denied")
