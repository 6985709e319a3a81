"""Bridge between a FastAPI request and the guard pipeline."""

from typing import Any, Optional

from fastapi import Request, Response

from delivery_guard.application.transition_service import TransitionService
from delivery_guard.domain.models.resource import ResourceKind
from delivery_guard.domain.schemas.transition import TransitionRequest, TransitionResponse
from delivery_guard.pipeline.context import GuardContext
from delivery_guard.pipeline.pipeline import GuardPipeline, Operation, OperationResult
from delivery_guard.security.actor import Actor

REPLAYED_HEADER = "Idempotent-Replayed"


def build_guard_context(
    request: Request,
    actor: Actor,
    body: Any,
    *,
    resource_kind: Optional[ResourceKind] = None,
    resource_id: Optional[str] = None,
    strict: bool = False,
    idempotent: bool = False,
    rate_limited: bool = False,
) -> GuardContext:
    return GuardContext(
        actor=actor,
        method=request.method,
        path=request.url.path,
        body=body,
        headers={k.lower(): v for k, v in request.headers.items()},
        correlation_id=getattr(request.state, "correlation_id", None),
        resource_kind=resource_kind,
        resource_id=resource_id,
        strict=strict,
        idempotent=idempotent,
        rate_limited=rate_limited,
    )


async def run_guarded(pipeline: GuardPipeline, ctx: GuardContext, operation: Operation) -> Response:
    """Run the pipeline; the body goes out exactly as produced (or as stored on a replay)."""
    outcome = await pipeline.run(ctx, operation)
    response = Response(
        content=outcome.body,
        status_code=outcome.status_code,
        media_type="application/json",
    )
    if outcome.replayed:
        response.headers[REPLAYED_HEADER] = "true"
    return response


def transition_operation(
    service: TransitionService,
    actor: Actor,
    kind: ResourceKind,
    resource_id: str,
    payload: TransitionRequest,
) -> Operation:
    async def _transition(ctx: GuardContext) -> OperationResult:
        result = await service.transition(
            actor,
            kind,
            resource_id,
            payload.target_state,
            reason=payload.reason,
            correlation_id=ctx.correlation_id,
        )
        body = TransitionResponse(
            resource_kind=kind.value,
            resource_id=resource_id,
            previous_state=result.previous_state.value,
            state=result.state.value,
            transitioned_at=result.transitioned_at,
        )
        return OperationResult(status_code=200, body=body.model_dump_json(), value=result)

    return _transition
