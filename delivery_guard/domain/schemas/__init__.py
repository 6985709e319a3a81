"""Pydantic schemas for the HTTP surface."""

from delivery_guard.domain.schemas.security import (
    FlagReportRequest,
    FlagView,
    RiskAssessmentResponse,
)
from delivery_guard.domain.schemas.transition import (
    PaymentCreateRequest,
    PaymentResponse,
    TransitionRequest,
    TransitionResponse,
)

__all__ = [
    "FlagReportRequest",
    "FlagView",
    "PaymentCreateRequest",
    "PaymentResponse",
    "RiskAssessmentResponse",
    "TransitionRequest",
    "TransitionResponse",
]
