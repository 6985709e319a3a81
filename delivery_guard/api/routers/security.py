"""Security API router: risk assessments, external flag reports, metrics export."""

from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, Response

from delivery_guard.api.dependencies import get_container, require_permission
from delivery_guard.api.guard import build_guard_context, run_guarded
from delivery_guard.core.container import GuardContainer
from delivery_guard.domain.exceptions import DomainValidationError
from delivery_guard.domain.schemas.security import (
    FlagReportRequest,
    FlagView,
    RiskAssessmentResponse,
)
from delivery_guard.pipeline.context import GuardContext
from delivery_guard.pipeline.pipeline import OperationResult
from delivery_guard.risk.models import FlagType, RiskAssessment
from delivery_guard.security.actor import Actor

router = APIRouter()


def _ts(value: Optional[float]) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value is not None else None


def _to_response(assessment: RiskAssessment) -> RiskAssessmentResponse:
    return RiskAssessmentResponse(
        identifier=assessment.identifier,
        tier=assessment.tier.value,
        score=assessment.score,
        flags=[
            FlagView(
                flag_type=f.flag_type.value,
                timestamp=_ts(f.timestamp),
                details=dict(f.details),
            )
            for f in assessment.flags
        ],
        last_activity=_ts(assessment.last_activity),
    )


@router.get("/security/risk/{identifier}", response_model=RiskAssessmentResponse)
async def get_risk_assessment(
    request: Request,
    identifier: str,
    actor: Annotated[Actor, Depends(require_permission("risk", "read"))],
    container: Annotated[GuardContainer, Depends(get_container)],
) -> Response:
    """Tier, score, last 10 flags and last activity for a user id or IP."""
    ctx = build_guard_context(request, actor, None)

    async def _read(_: GuardContext) -> OperationResult:
        assessment = container.risk_scorer.assessment(identifier)
        return OperationResult(status_code=200, body=_to_response(assessment).model_dump_json())

    return await run_guarded(container.pipeline, ctx, _read)


@router.post("/security/flags", response_model=RiskAssessmentResponse)
async def report_flag(
    request: Request,
    body: FlagReportRequest,
    actor: Annotated[Actor, Depends(require_permission("risk", "report"))],
    container: Annotated[GuardContainer, Depends(get_container)],
) -> Response:
    """Record a flagged event observed elsewhere (e.g. FAILED_LOGIN from the auth service)."""
    try:
        flag_type = FlagType(body.flag_type.strip().upper())
    except ValueError:
        raise DomainValidationError(f"Unknown flag type: {body.flag_type}")
    ctx = build_guard_context(request, actor, body.model_dump(mode="json"))

    async def _report(_: GuardContext) -> OperationResult:
        assessment = container.risk_scorer.flag(body.identifier, flag_type, body.details or {})
        return OperationResult(status_code=200, body=_to_response(assessment).model_dump_json())

    return await run_guarded(container.pipeline, ctx, _report)


@router.get("/metrics")
async def export_metrics(
    actor: Annotated[Actor, Depends(require_permission("metrics", "read"))],
    container: Annotated[GuardContainer, Depends(get_container)],
):
    """Counters and latency summaries."""
    return container.metrics.export_metrics()
