"""Guard context: the request snapshot each pipeline stage reads and enriches."""

from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from delivery_guard.domain.models.resource import Resource, ResourceKind
from delivery_guard.risk.models import RiskAssessment
from delivery_guard.security.actor import Actor
from delivery_guard.security.idempotency import StoredResponse
from delivery_guard.security.replay_guard import ReplayCheck


@dataclass
class GuardContext:
    """
    Inputs are set by the HTTP layer; enriched fields are filled by stages in order.
    Header names are stored lower-case.
    """

    actor: Actor
    method: str
    path: str
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    correlation_id: Optional[str] = None
    resource_kind: Optional[ResourceKind] = None
    resource_id: Optional[str] = None
    strict: bool = False
    idempotent: bool = False
    rate_limited: bool = False

    # Enriched by stages
    risk: Optional[RiskAssessment] = None
    resource: Optional[Resource] = None
    replay: Optional[ReplayCheck] = None
    idempotency_key: Optional[str] = None
    cached_response: Optional[StoredResponse] = None
    exit_stack: Optional[AsyncExitStack] = None

    @property
    def risk_identifier(self) -> str:
        """User id when known, else client IP."""
        return self.actor.actor_id or self.actor.ip_address or "unknown"

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())
