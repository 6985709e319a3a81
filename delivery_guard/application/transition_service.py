"""State transition service: the transaction boundary for delivery and payment state changes."""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from delivery_guard.application.exceptions import StoreUnavailableError, TransitionConflictError
from delivery_guard.application.resource_store import CommitResult, ResourceStore
from delivery_guard.domain.exceptions import (
    AmountMismatchError,
    InvalidTransitionError,
    ResourceNotFoundError,
    UnauthorizedTransitionError,
)
from delivery_guard.domain.models.resource import Delivery, Payment, Resource, ResourceKind
from delivery_guard.domain.models.transitions import requires_amount_check
from delivery_guard.domain.validators.amount_validator import (
    DEFAULT_TOLERANCE_MINOR_UNITS,
    validate_amount_consistency,
)
from delivery_guard.domain.validators.transition_validator import resolve_target, validate_edge
from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.observability.metrics import MetricsCollector
from delivery_guard.security.actor import Actor
from delivery_guard.security.ownership import OwnershipGate

_INVALID_EVENTS = {
    ResourceKind.DELIVERY: SecurityEventType.INVALID_STATE_TRANSITION,
    ResourceKind.PAYMENT: SecurityEventType.INVALID_PAYMENT_TRANSITION,
}
_UNAUTHORIZED_EVENTS = {
    ResourceKind.DELIVERY: SecurityEventType.UNAUTHORIZED_STATE_TRANSITION,
    ResourceKind.PAYMENT: SecurityEventType.UNAUTHORIZED_PAYMENT_TRANSITION,
}


@dataclass(frozen=True)
class TransitionResult:
    resource: Resource
    previous_state: Enum
    state: Enum
    transitioned_at: datetime


class TransitionService:
    """
    Role-aware FSM over the transition tables.
    Order: load, edge lookup (invalid vs unauthorized), ownership re-check for
    non-privileged roles, amount consistency for payment completion, then a
    compare-and-set commit conditional on the state that was read.
    Every rejection emits a security event carrying actor, resource and attempted edge.
    """

    def __init__(
        self,
        store: ResourceStore,
        ownership_gate: OwnershipGate,
        audit_logger: AuditLogger,
        metrics: MetricsCollector,
        amount_tolerance_minor_units: int = DEFAULT_TOLERANCE_MINOR_UNITS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._gate = ownership_gate
        self._audit = audit_logger
        self._metrics = metrics
        self._tolerance = amount_tolerance_minor_units
        self._logger = logger or logging.getLogger(__name__)

    async def transition(
        self,
        actor: Actor,
        kind: ResourceKind,
        resource_id: str,
        raw_target: str,
        *,
        reason: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> TransitionResult:
        # Step 1: load current state
        resource = await self._load(actor, kind, resource_id, correlation_id)
        current = resource.state

        # Step 2: edge lookup
        try:
            target = resolve_target(kind, current, raw_target)
            validate_edge(kind, current, target, actor.role)
        except InvalidTransitionError as e:
            await self._reject(
                actor,
                _INVALID_EVENTS[kind],
                Severity.MEDIUM,
                f"Invalid {kind.value} transition attempt",
                resource,
                e.target,
                correlation_id,
            )
            raise
        except UnauthorizedTransitionError as e:
            await self._reject(
                actor,
                _UNAUTHORIZED_EVENTS[kind],
                Severity.HIGH,
                f"Unauthorized {kind.value} transition attempt",
                resource,
                e.target,
                correlation_id,
            )
            raise

        attempted = f"{current.value}->{target.value}"

        # Step 3: instance ownership for non-privileged roles
        if not actor.is_privileged:
            await self._gate.ensure_owner(actor, resource, correlation_id=correlation_id, attempted=attempted)

        # Step 4: amount consistency on payment completion
        if requires_amount_check(kind, target):
            if not isinstance(resource, Payment):
                raise StoreUnavailableError(
                    f"Store returned {type(resource).__name__} for payment {resource_id}"
                )
            await self._check_amount(actor, resource, correlation_id)

        # Step 5: conditional commit
        now = datetime.now(timezone.utc)
        try:
            outcome = await self._store.compare_and_set(
                kind, resource_id, current, {"state": target, "updated_at": now}
            )
        except Exception as e:
            self._logger.error(
                "transition_commit_failed",
                extra={"resource_id": resource_id, "resource_kind": kind.value, "error": str(e)},
            )
            self._metrics.increment("transition_rejections", label="reason", label_value="store_unavailable")
            raise StoreUnavailableError("Store did not confirm the transition") from e
        if outcome is not CommitResult.COMMITTED:
            await self._reject(
                actor,
                SecurityEventType.STATE_TRANSITION_CONFLICT,
                Severity.MEDIUM,
                f"Concurrent {kind.value} transition lost the race",
                resource,
                target.value,
                correlation_id,
            )
            raise TransitionConflictError(f"{kind.value} {resource_id} changed state concurrently")

        # Step 6: audit
        await self._audit.log_action(
            actor=actor.actor_id,
            action=f"{kind.value}_state_transition",
            resource_type=kind.value,
            resource_id=resource_id,
            correlation_id=correlation_id,
            old_values={"state": current.value},
            new_values={"state": target.value},
            reason=reason,
            metadata={"role": actor.role.value},
        )
        self._metrics.increment("transitions_committed", label="kind", label_value=kind.value)
        self._logger.info(
            "transition_committed",
            extra={
                "resource_id": resource_id,
                "resource_kind": kind.value,
                "from_state": current.value,
                "to_state": target.value,
            },
        )
        updated = dataclasses.replace(resource, state=target, updated_at=now)
        return TransitionResult(
            resource=updated,
            previous_state=current,
            state=target,
            transitioned_at=now,
        )

    async def _load(
        self,
        actor: Actor,
        kind: ResourceKind,
        resource_id: str,
        correlation_id: Optional[str],
    ) -> Resource:
        try:
            resource = await self._store.get(kind, resource_id)
        except Exception as e:
            self._logger.error(
                "resource_load_failed",
                extra={"resource_id": resource_id, "resource_kind": kind.value, "error": str(e)},
            )
            raise StoreUnavailableError("Store did not return the resource") from e
        if resource is None:
            await self._audit.log_security_event(
                event_type=SecurityEventType.RESOURCE_NOT_FOUND,
                severity=Severity.LOW,
                description=f"Transition requested on missing {kind.value}",
                actor_id=actor.actor_id,
                correlation_id=correlation_id,
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
                metadata={"resource_kind": kind.value, "resource_id": resource_id},
            )
            self._metrics.increment("transition_rejections", label="reason", label_value="not_found")
            raise ResourceNotFoundError(kind.value, resource_id)
        return resource

    async def _check_amount(self, actor: Actor, payment: Payment, correlation_id: Optional[str]) -> None:
        try:
            delivery = await self._store.get(ResourceKind.DELIVERY, payment.delivery_id)
        except Exception as e:
            self._logger.error(
                "resource_load_failed",
                extra={
                    "resource_id": payment.delivery_id,
                    "resource_kind": ResourceKind.DELIVERY.value,
                    "error": str(e),
                },
            )
            raise StoreUnavailableError("Store did not return the delivery total") from e
        authoritative = delivery.total_fare if isinstance(delivery, Delivery) else None
        try:
            if authoritative is None:
                raise AmountMismatchError(expected=None, provided=str(payment.amount))
            validate_amount_consistency(payment.amount, authoritative, self._tolerance)
        except AmountMismatchError as e:
            self._metrics.increment("transition_rejections", label="reason", label_value="amount_mismatch")
            await self._audit.log_security_event(
                event_type=SecurityEventType.PAYMENT_AMOUNT_MISMATCH,
                severity=Severity.CRITICAL,
                description="Payment amount does not match delivery total",
                actor_id=actor.actor_id,
                correlation_id=correlation_id,
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
                metadata={
                    "payment_id": payment.resource_id,
                    "delivery_id": payment.delivery_id,
                    "expected": e.expected,
                    "provided": e.provided,
                },
            )
            raise

    async def _reject(
        self,
        actor: Actor,
        event_type: SecurityEventType,
        severity: Severity,
        description: str,
        resource: Resource,
        attempted_target: str,
        correlation_id: Optional[str],
    ) -> None:
        metadata: Dict[str, Any] = {
            "resource_kind": resource.kind.value,
            "resource_id": resource.resource_id,
            "current_state": resource.state.value,
            "attempted_state": attempted_target,
            "role": actor.role.value,
        }
        self._metrics.increment("transition_rejections", label="reason", label_value=event_type.value.lower())
        await self._audit.log_security_event(
            event_type=event_type,
            severity=severity,
            description=description,
            actor_id=actor.actor_id,
            correlation_id=correlation_id,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
            metadata=metadata,
        )
