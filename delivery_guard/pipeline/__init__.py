"""Guard pipeline: ordered named stages around one state-changing operation. No FastAPI."""

from delivery_guard.pipeline.context import GuardContext
from delivery_guard.pipeline.observer import OutcomeObserver
from delivery_guard.pipeline.pipeline import GuardOutcome, GuardPipeline, Operation, OperationResult
from delivery_guard.pipeline.stages import (
    GuardStage,
    IdempotencyStage,
    OwnershipStage,
    RateLimitStage,
    ReplayStage,
    RiskScreenStage,
)

__all__ = [
    "GuardContext",
    "GuardOutcome",
    "GuardPipeline",
    "GuardStage",
    "IdempotencyStage",
    "Operation",
    "OperationResult",
    "OutcomeObserver",
    "OwnershipStage",
    "RateLimitStage",
    "ReplayStage",
    "RiskScreenStage",
]
