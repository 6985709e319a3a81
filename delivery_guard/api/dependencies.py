"""FastAPI dependency injection: container, actor, correlation_id, permission checks."""

from typing import Annotated, Callable

from fastapi import Depends, Request

from delivery_guard.core.container import GuardContainer
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.security.actor import Actor
from delivery_guard.security.exceptions import AuthenticationRequiredError, AuthorizationError


def get_container(request: Request) -> GuardContainer:
    """Return the process-wide container (set in lifespan or by tests)."""
    return request.app.state.container


def get_actor(request: Request) -> Actor:
    """Extract the actor from request.state (set by middleware)."""
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise AuthenticationRequiredError("Authentication required")
    return actor


def get_correlation_id(request: Request) -> str:
    """Extract correlation_id from request.state (set by middleware)."""
    return getattr(request.state, "correlation_id", "") or ""


def require_permission(resource: str, action: str) -> Callable:
    """Dependency factory: RBAC check for (resource, action). Denial emits UNAUTHORIZED_ACCESS."""

    async def _check(
        request: Request,
        actor: Annotated[Actor, Depends(get_actor)],
        container: Annotated[GuardContainer, Depends(get_container)],
    ) -> Actor:
        try:
            container.rbac.check_permission(actor.role, resource, action)
        except AuthorizationError:
            await container.audit_logger.log_security_event(
                event_type=SecurityEventType.UNAUTHORIZED_ACCESS,
                severity=Severity.HIGH,
                description=f"Role lacks permission for {action} on {resource}",
                actor_id=actor.actor_id,
                correlation_id=getattr(request.state, "correlation_id", None),
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
                metadata={"resource": resource, "action": action, "role": actor.role.value},
            )
            raise
        return actor

    return _check
