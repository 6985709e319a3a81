"""Pydantic schemas for the security API (risk assessments, flag reports)."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class FlagView(BaseModel):
    flag_type: str
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)


class RiskAssessmentResponse(BaseModel):
    identifier: str
    tier: str
    score: int
    flags: List[FlagView] = Field(default_factory=list)
    last_activity: Optional[datetime] = None


class FlagReportRequest(BaseModel):
    """Report of a flagged event observed outside this layer (e.g. a failed login at the auth service)."""

    identifier: str = Field(..., min_length=1, max_length=128)
    flag_type: str = Field(..., min_length=1, max_length=64)
    details: Optional[Dict[str, Any]] = None
