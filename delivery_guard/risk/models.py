"""Behaviour-record model: flag catalogue, tiers, per-actor records. Pure; no I/O."""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class FlagType(str, Enum):
    HONEYPOT_ACCESS = "HONEYPOT_ACCESS"
    FAILED_LOGIN = "FAILED_LOGIN"
    RAPID_REQUESTS = "RAPID_REQUESTS"
    SUSPICIOUS_USER_AGENT = "SUSPICIOUS_USER_AGENT"
    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    PAYMENT_FAILURE = "PAYMENT_FAILURE"
    LOCATION_ANOMALY = "LOCATION_ANOMALY"
    TIME_MANIPULATION = "TIME_MANIPULATION"
    ENUMERATION_ATTEMPT = "ENUMERATION_ATTEMPT"
    ATTACK_PATTERN = "ATTACK_PATTERN"
    HEADER_MANIPULATION = "HEADER_MANIPULATION"
    MALICIOUS_PAYLOAD = "MALICIOUS_PAYLOAD"
    REPETITIVE_REQUESTS = "REPETITIVE_REQUESTS"

    @property
    def points(self) -> int:
        return FLAG_POINTS.get(self, DEFAULT_FLAG_POINTS)


FLAG_POINTS: Dict[FlagType, int] = {
    FlagType.HONEYPOT_ACCESS: 50,
    FlagType.FAILED_LOGIN: 10,
    FlagType.RAPID_REQUESTS: 20,
    FlagType.SUSPICIOUS_USER_AGENT: 15,
    FlagType.INVALID_INPUT: 5,
    FlagType.UNAUTHORIZED_ACCESS: 30,
    FlagType.PAYMENT_FAILURE: 25,
    FlagType.LOCATION_ANOMALY: 15,
    FlagType.TIME_MANIPULATION: 20,
    FlagType.ENUMERATION_ATTEMPT: 25,
}
# Detector-only flags carry no catalogue entry.
DEFAULT_FLAG_POINTS = 10


class RiskTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Lower bounds, highest first.
TIER_THRESHOLDS: Tuple[Tuple[RiskTier, int], ...] = (
    (RiskTier.CRITICAL, 100),
    (RiskTier.HIGH, 50),
    (RiskTier.MEDIUM, 20),
)


def tier_for(score: int) -> RiskTier:
    for tier, lower_bound in TIER_THRESHOLDS:
        if score >= lower_bound:
            return tier
    return RiskTier.LOW


# (flag type, details) as produced by detection or reported by collaborators.
FlagSignal = Tuple[FlagType, Mapping[str, Any]]


@dataclass(frozen=True)
class Flag:
    flag_type: FlagType
    timestamp: float
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flag_type": self.flag_type.value,
            "timestamp": self.timestamp,
            "details": dict(self.details),
        }


@dataclass
class BehaviorRecord:
    """Mutable per-actor state. Guarded by its own lock; owned by RiskScorer."""

    identifier: str
    last_activity: float
    last_decay: float
    score: int = 0
    tier: RiskTier = RiskTier.LOW
    flags: List[Flag] = field(default_factory=list)
    evicted: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


@dataclass(frozen=True)
class RiskAssessment:
    """Read-only snapshot of a behaviour record."""

    identifier: str
    tier: RiskTier
    score: int
    flags: Tuple[Flag, ...] = ()
    last_activity: Optional[float] = None
    new_flags: Tuple[FlagType, ...] = ()
