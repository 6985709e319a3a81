"""Deliveries API router: POST /deliveries/{delivery_id}/transitions."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from delivery_guard.api.dependencies import get_actor, get_container
from delivery_guard.api.guard import build_guard_context, run_guarded, transition_operation
from delivery_guard.core.container import GuardContainer
from delivery_guard.domain.models.resource import ResourceKind
from delivery_guard.domain.schemas.transition import TransitionRequest, TransitionResponse
from delivery_guard.security.actor import Actor

router = APIRouter()


@router.post("/{delivery_id}/transitions", response_model=TransitionResponse)
async def transition_delivery(
    request: Request,
    delivery_id: str,
    body: TransitionRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    container: Annotated[GuardContainer, Depends(get_container)],
) -> Response:
    """Move a delivery along its state machine. Requires X-Timestamp."""
    ctx = build_guard_context(
        request,
        actor,
        body.model_dump(mode="json"),
        resource_kind=ResourceKind.DELIVERY,
        resource_id=delivery_id,
    )
    operation = transition_operation(
        container.transition_service, actor, ResourceKind.DELIVERY, delivery_id, body
    )
    return await run_guarded(container.pipeline, ctx, operation)
