"""Payments API router: POST /payments (idempotent, strict), POST /payments/{payment_id}/transitions."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from delivery_guard.api.dependencies import get_actor, get_container, require_permission
from delivery_guard.api.guard import build_guard_context, run_guarded, transition_operation
from delivery_guard.core.container import GuardContainer
from delivery_guard.domain.models.resource import ResourceKind
from delivery_guard.domain.schemas.transition import (
    PaymentCreateRequest,
    PaymentResponse,
    TransitionRequest,
    TransitionResponse,
)
from delivery_guard.pipeline.context import GuardContext
from delivery_guard.pipeline.pipeline import OperationResult
from delivery_guard.security.actor import Actor

router = APIRouter()


@router.post("", status_code=201, response_model=PaymentResponse)
async def create_payment(
    request: Request,
    body: PaymentCreateRequest,
    actor: Annotated[Actor, Depends(require_permission("payments", "create"))],
    container: Annotated[GuardContainer, Depends(get_container)],
) -> Response:
    """
    Create a PENDING payment for a delivered delivery.
    Requires Idempotency-Key, X-Timestamp and X-Nonce; a repeat key returns the first response.
    """
    ctx = build_guard_context(
        request,
        actor,
        body.model_dump(mode="json"),
        strict=True,
        idempotent=True,
        rate_limited=True,
    )

    async def _create(guard_ctx: GuardContext) -> OperationResult:
        payment = await container.payment_service.create_payment(
            actor, body, correlation_id=guard_ctx.correlation_id
        )
        response = PaymentResponse(
            payment_id=payment.resource_id,
            delivery_id=payment.delivery_id,
            amount=payment.amount,
            method=payment.method,
            state=payment.state.value,
            created_at=payment.created_at,
        )
        return OperationResult(status_code=201, body=response.model_dump_json(), value=payment)

    return await run_guarded(container.payment_pipeline, ctx, _create)


@router.post("/{payment_id}/transitions", response_model=TransitionResponse)
async def transition_payment(
    request: Request,
    payment_id: str,
    body: TransitionRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    container: Annotated[GuardContainer, Depends(get_container)],
) -> Response:
    """Move a payment along its state machine. Money-moving: idempotent and strict."""
    ctx = build_guard_context(
        request,
        actor,
        body.model_dump(mode="json"),
        resource_kind=ResourceKind.PAYMENT,
        resource_id=payment_id,
        strict=True,
        idempotent=True,
    )
    operation = transition_operation(
        container.transition_service, actor, ResourceKind.PAYMENT, payment_id, body
    )
    return await run_guarded(container.pipeline, ctx, operation)
