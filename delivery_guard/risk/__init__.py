"""Risk: per-actor behaviour scoring, signal detection, request history, tier policy. No FastAPI."""

from delivery_guard.risk.activity import ActivityTracker
from delivery_guard.risk.detection import RequestSignals, detect_suspicious_patterns
from delivery_guard.risk.models import (
    FLAG_POINTS,
    Flag,
    FlagType,
    RiskAssessment,
    RiskTier,
    tier_for,
)
from delivery_guard.risk.policy import RiskAction, RiskDecision, RiskPolicy
from delivery_guard.risk.scorer import RiskScorer
from delivery_guard.risk.sweeper import RiskSweeper

__all__ = [
    "ActivityTracker",
    "FLAG_POINTS",
    "Flag",
    "FlagType",
    "RequestSignals",
    "RiskAction",
    "RiskAssessment",
    "RiskDecision",
    "RiskPolicy",
    "RiskScorer",
    "RiskSweeper",
    "RiskTier",
    "detect_suspicious_patterns",
    "tier_for",
]
