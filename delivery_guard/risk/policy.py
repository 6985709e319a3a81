"""Graduated response policy keyed by risk tier."""

from dataclasses import dataclass
from enum import Enum

from delivery_guard.risk.models import RiskTier

DEFAULT_MEDIUM_DELAY_SECONDS = 0.5
DEFAULT_HIGH_DELAY_SECONDS = 2.0


class RiskAction(str, Enum):
    ALLOW = "allow"
    DELAY = "delay"
    BLOCK = "block"


@dataclass(frozen=True)
class RiskDecision:
    action: RiskAction
    delay_seconds: float = 0.0


class RiskPolicy:
    # Tier      Action
    # LOW       allow
    # MEDIUM    delay medium_delay
    # HIGH      delay high_delay
    # CRITICAL  block (429)

    def __init__(
        self,
        medium_delay_seconds: float = DEFAULT_MEDIUM_DELAY_SECONDS,
        high_delay_seconds: float = DEFAULT_HIGH_DELAY_SECONDS,
    ) -> None:
        self.medium_delay_seconds = medium_delay_seconds
        self.high_delay_seconds = high_delay_seconds

    def decide(self, tier: RiskTier) -> RiskDecision:
        if tier is RiskTier.CRITICAL:
            return RiskDecision(RiskAction.BLOCK)
        if tier is RiskTier.HIGH:
            return RiskDecision(RiskAction.DELAY, self.high_delay_seconds)
        if tier is RiskTier.MEDIUM:
            return RiskDecision(RiskAction.DELAY, self.medium_delay_seconds)
        return RiskDecision(RiskAction.ALLOW)
