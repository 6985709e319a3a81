"""
Guard stages. Each stage either raises a terminal error (short-circuit) or
enriches the GuardContext and returns. A stage that sets cached_response ends
the pipeline with that response.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Protocol

from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.observability.metrics import MetricsCollector
from delivery_guard.pipeline.context import GuardContext
from delivery_guard.risk.activity import ActivityTracker
from delivery_guard.risk.detection import RequestSignals, detect_suspicious_patterns
from delivery_guard.risk.models import RiskTier
from delivery_guard.risk.policy import RiskAction, RiskPolicy
from delivery_guard.risk.scorer import RiskScorer
from delivery_guard.scalability.rate_limiter import ActorRateLimiter
from delivery_guard.security.exceptions import (
    IdempotencyKeyRequiredError,
    RateLimitExceededError,
    RiskBlockedError,
)
from delivery_guard.security.idempotency import IDEMPOTENCY_HEADER, IdempotencyCache
from delivery_guard.security.ownership import OwnershipGate
from delivery_guard.security.replay_guard import NONCE_HEADER, TIMESTAMP_HEADER, ReplayGuard

logger = logging.getLogger(__name__)

_TIER_SEVERITY = {
    RiskTier.LOW: Severity.LOW,
    RiskTier.MEDIUM: Severity.MEDIUM,
    RiskTier.HIGH: Severity.HIGH,
    RiskTier.CRITICAL: Severity.CRITICAL,
}


class GuardStage(Protocol):
    name: str

    async def __call__(self, ctx: GuardContext) -> None: ...


async def _security_event(
    audit: AuditLogger,
    ctx: GuardContext,
    event_type: SecurityEventType,
    severity: Severity,
    description: str,
    metadata: dict,
) -> None:
    await audit.log_security_event(
        event_type=event_type,
        severity=severity,
        description=description,
        actor_id=ctx.actor.actor_id,
        correlation_id=ctx.correlation_id,
        ip_address=ctx.actor.ip_address,
        user_agent=ctx.actor.user_agent,
        metadata=metadata,
    )


class RiskScreenStage:
    """
    Detect request signals (content and, with a tracker, request history),
    update the actor's record, apply the tier policy.
    """

    name = "risk_screen"

    def __init__(
        self,
        scorer: RiskScorer,
        policy: RiskPolicy,
        audit_logger: AuditLogger,
        metrics: MetricsCollector,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        activity: Optional[ActivityTracker] = None,
    ) -> None:
        self._scorer = scorer
        self._activity = activity
        self._policy = policy
        self._audit = audit_logger
        self._metrics = metrics
        self._clock = clock
        self._sleep = sleep

    async def __call__(self, ctx: GuardContext) -> None:
        signals = RequestSignals(
            method=ctx.method,
            path=ctx.path,
            user_agent=ctx.actor.user_agent,
            headers=ctx.headers,
            body=ctx.body,
            client_timestamp=ctx.header(TIMESTAMP_HEADER),
        )
        flags = detect_suspicious_patterns(signals, self._clock())
        if self._activity is not None:
            flags.extend(
                self._activity.record(
                    ctx.risk_identifier,
                    ctx.path,
                    ctx.actor.ip_address,
                    track_address=bool(ctx.actor.actor_id),
                )
            )
        assessment = self._scorer.observe(ctx.risk_identifier, flags)
        ctx.risk = assessment

        if assessment.new_flags:
            await _security_event(
                self._audit,
                ctx,
                SecurityEventType.SUSPICIOUS_BEHAVIOR,
                _TIER_SEVERITY[assessment.tier],
                "Suspicious behavior detected: " + ", ".join(f.value for f in assessment.new_flags),
                {
                    "flags": [f.value for f in assessment.new_flags],
                    "total_score": assessment.score,
                    "risk_level": assessment.tier.value,
                },
            )

        decision = self._policy.decide(assessment.tier)
        if decision.action is RiskAction.BLOCK:
            self._metrics.increment("risk_blocks")
            await _security_event(
                self._audit,
                ctx,
                SecurityEventType.CRITICAL_RISK_BLOCKED,
                Severity.CRITICAL,
                "Request blocked due to critical risk score",
                {"score": assessment.score, "identifier": ctx.risk_identifier},
            )
            raise RiskBlockedError("Access temporarily restricted due to suspicious activity")
        if decision.action is RiskAction.DELAY:
            self._metrics.increment("risk_delays", label="tier", label_value=assessment.tier.value)
            logger.info(
                "risk_delay_applied",
                extra={"tier": assessment.tier.value, "delay_seconds": decision.delay_seconds},
            )
            await self._sleep(decision.delay_seconds)


class RateLimitStage:
    """
    Per-actor budget for money-moving requests. Only runs when ctx.rate_limited.
    Placed after idempotency so a replayed response is never counted.
    """

    name = "rate_limit"

    def __init__(self, limiter: ActorRateLimiter, audit_logger: AuditLogger) -> None:
        self._limiter = limiter
        self._audit = audit_logger

    async def __call__(self, ctx: GuardContext) -> None:
        if not ctx.rate_limited:
            return
        if await self._limiter.allow_request(ctx.risk_identifier):
            return
        await _security_event(
            self._audit,
            ctx,
            SecurityEventType.RATE_LIMIT_EXCEEDED,
            Severity.MEDIUM,
            "Rate limit exceeded",
            {"path": ctx.path, "window_seconds": self._limiter.window_seconds},
        )
        raise RateLimitExceededError("Too many requests")


class OwnershipStage:
    """Resolve the targeted resource and bind it to the actor."""

    name = "ownership"

    def __init__(self, gate: OwnershipGate) -> None:
        self._gate = gate

    async def __call__(self, ctx: GuardContext) -> None:
        if ctx.resource_kind is None or ctx.resource_id is None:
            return
        ctx.resource = await self._gate.authorize(
            ctx.actor, ctx.resource_kind, ctx.resource_id, correlation_id=ctx.correlation_id
        )


class ReplayStage:
    """Timestamp window, strict nonce, and (without an idempotency key) content signature."""

    name = "replay"

    def __init__(self, guard: ReplayGuard) -> None:
        self._guard = guard

    async def __call__(self, ctx: GuardContext) -> None:
        has_key = bool((ctx.header(IDEMPOTENCY_HEADER) or "").strip())
        ctx.replay = await self._guard.check(
            method=ctx.method,
            path=ctx.path,
            body=ctx.body,
            actor_id=ctx.risk_identifier,
            timestamp_header=ctx.header(TIMESTAMP_HEADER),
            nonce_header=ctx.header(NONCE_HEADER),
            strict=ctx.strict,
            check_signature=not has_key,
            correlation_id=ctx.correlation_id,
            ip_address=ctx.actor.ip_address,
            user_agent=ctx.actor.user_agent,
        )


class IdempotencyStage:
    """
    Require the key, serialize on (actor, key) for the rest of the request,
    and short-circuit with the stored response on a hit.
    """

    name = "idempotency"

    def __init__(
        self,
        cache: IdempotencyCache,
        audit_logger: AuditLogger,
        metrics: MetricsCollector,
    ) -> None:
        self._cache = cache
        self._audit = audit_logger
        self._metrics = metrics

    async def __call__(self, ctx: GuardContext) -> None:
        if not ctx.idempotent:
            return
        try:
            key = self._cache.require_key(ctx.header(IDEMPOTENCY_HEADER))
        except IdempotencyKeyRequiredError:
            await _security_event(
                self._audit,
                ctx,
                SecurityEventType.IDEMPOTENCY_KEY_MISSING,
                Severity.MEDIUM,
                "Money-moving request without idempotency key",
                {"path": ctx.path},
            )
            raise
        ctx.idempotency_key = key
        if ctx.exit_stack is not None:
            await ctx.exit_stack.enter_async_context(self._cache.lock_for(ctx.actor.actor_id, key))
        stored = await self._cache.lookup(ctx.actor.actor_id, key)
        if stored is not None:
            self._metrics.increment("idempotent_replays")
            ctx.cached_response = stored
