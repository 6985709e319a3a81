"""Payment creation service. Orchestrates verification, persist and audit for a new payment."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from delivery_guard.application.exceptions import StoreUnavailableError
from delivery_guard.application.resource_store import ResourceStore
from delivery_guard.domain.exceptions import (
    AmountMismatchError,
    PaymentPreconditionError,
    ResourceNotFoundError,
)
from delivery_guard.domain.models.resource import (
    Delivery,
    DeliveryState,
    Payment,
    PaymentState,
    ResourceKind,
)
from delivery_guard.domain.schemas.transition import PaymentCreateRequest
from delivery_guard.domain.validators.amount_validator import (
    DEFAULT_TOLERANCE_MINOR_UNITS,
    validate_amount_consistency,
)
from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.observability.metrics import MetricsCollector
from delivery_guard.security.actor import Actor
from delivery_guard.security.exceptions import ForbiddenError

# A delivery may not be charged again while one of these exists.
BLOCKING_PAYMENT_STATES = frozenset({PaymentState.PROCESSING, PaymentState.COMPLETED})


class PaymentService:
    """
    Creates exactly one PENDING payment for a delivered delivery.
    Idempotency and replay protection run before this service; it only verifies
    business preconditions: payer, delivery state, amount, no live payment.
    """

    def __init__(
        self,
        store: ResourceStore,
        audit_logger: AuditLogger,
        metrics: MetricsCollector,
        amount_tolerance_minor_units: int = DEFAULT_TOLERANCE_MINOR_UNITS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._audit = audit_logger
        self._metrics = metrics
        self._tolerance = amount_tolerance_minor_units
        self._logger = logger or logging.getLogger(__name__)

    async def create_payment(
        self,
        actor: Actor,
        request: PaymentCreateRequest,
        correlation_id: Optional[str] = None,
    ) -> Payment:
        # Step 1: delivery exists
        try:
            delivery = await self._store.get(ResourceKind.DELIVERY, request.delivery_id)
        except Exception as e:
            raise StoreUnavailableError("Store did not return the delivery") from e
        if not isinstance(delivery, Delivery):
            await self._security_event(
                actor,
                SecurityEventType.RESOURCE_NOT_FOUND,
                Severity.LOW,
                "Payment requested for missing delivery",
                correlation_id,
                delivery_id=request.delivery_id,
            )
            raise ResourceNotFoundError(ResourceKind.DELIVERY.value, request.delivery_id)

        # Step 2: payer is the delivery's customer
        if not actor.is_privileged and delivery.customer_id != actor.actor_id:
            await self._security_event(
                actor,
                SecurityEventType.UNAUTHORIZED_PAYMENT,
                Severity.HIGH,
                "Unauthorized payment attempt",
                correlation_id,
                delivery_id=delivery.resource_id,
            )
            raise ForbiddenError("Access denied")

        # Step 3: delivery completed
        if delivery.state is not DeliveryState.DELIVERED:
            raise PaymentPreconditionError(
                "Payment not allowed for delivery in current state",
                reason="delivery_not_completed",
            )

        # Step 4: amount against the delivery total
        try:
            if delivery.total_fare is None:
                raise AmountMismatchError(expected=None, provided=str(request.amount))
            validate_amount_consistency(request.amount, delivery.total_fare, self._tolerance)
        except AmountMismatchError as e:
            await self._security_event(
                actor,
                SecurityEventType.PAYMENT_AMOUNT_MISMATCH,
                Severity.CRITICAL,
                "Payment amount does not match delivery total",
                correlation_id,
                delivery_id=delivery.resource_id,
                expected=e.expected,
                provided=e.provided,
            )
            raise

        # Step 5: no live payment for this delivery
        existing = await self._store.list_payments_for_delivery(delivery.resource_id)
        live = [p for p in existing if p.state in BLOCKING_PAYMENT_STATES]
        if live:
            await self._security_event(
                actor,
                SecurityEventType.DUPLICATE_PAYMENT_ATTEMPT,
                Severity.HIGH,
                "Duplicate payment attempt",
                correlation_id,
                delivery_id=delivery.resource_id,
                existing_payment_id=live[0].resource_id,
            )
            raise PaymentPreconditionError(
                "Payment already exists for this delivery", reason="duplicate_payment"
            )

        # Step 6: persist
        now = datetime.now(timezone.utc)
        payment = Payment(
            resource_id=str(uuid.uuid4()),
            state=PaymentState.PENDING,
            delivery_id=delivery.resource_id,
            customer_id=delivery.customer_id,
            amount=request.amount,
            courier_id=delivery.courier_id,
            method=request.method,
            created_at=now,
            updated_at=now,
        )
        try:
            stored = await self._store.insert_payment(payment)
        except Exception as e:
            self._logger.error(
                "payment_persist_failed",
                extra={"delivery_id": delivery.resource_id, "error": str(e)},
            )
            raise StoreUnavailableError("Store did not confirm the payment") from e

        # Step 7: audit
        await self._audit.log_action(
            actor=actor.actor_id,
            action="payment_created",
            resource_type=ResourceKind.PAYMENT.value,
            resource_id=stored.resource_id,
            correlation_id=correlation_id,
            new_values={
                "state": stored.state.value,
                "amount": str(stored.amount),
                "delivery_id": stored.delivery_id,
                "method": stored.method,
            },
        )
        self._metrics.increment("payments_created")
        self._logger.info(
            "payment_created",
            extra={"payment_id": stored.resource_id, "delivery_id": stored.delivery_id},
        )
        return stored

    async def _security_event(
        self,
        actor: Actor,
        event_type: SecurityEventType,
        severity: Severity,
        description: str,
        correlation_id: Optional[str],
        **metadata: object,
    ) -> None:
        await self._audit.log_security_event(
            event_type=event_type,
            severity=severity,
            description=description,
            actor_id=actor.actor_id,
            correlation_id=correlation_id,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
            metadata=dict(metadata),
        )
