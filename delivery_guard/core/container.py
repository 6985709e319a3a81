# delivery_guard/core/container.py

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from delivery_guard.application.payment_service import PaymentService
from delivery_guard.application.resource_store import ResourceStore
from delivery_guard.application.transition_service import TransitionService
from delivery_guard.config.settings import AppSettings
from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.governance.audit_repository import AlertPublisher, AuditRepository
from delivery_guard.infrastructure.cache.redis_client import RedisClient
from delivery_guard.infrastructure.cache.replay_store_redis import RedisReplayWindowStore
from delivery_guard.infrastructure.database.audit_repository_db import DbAuditRepository
from delivery_guard.infrastructure.database.idempotency_repository_db import DbIdempotencyRepository
from delivery_guard.infrastructure.database.resource_store_db import DbResourceStore
from delivery_guard.infrastructure.database.session import build_engine, build_sessionmaker
from delivery_guard.infrastructure.memory.audit_repository import InMemoryAuditRepository
from delivery_guard.infrastructure.memory.idempotency_store import InMemoryIdempotencyRepository
from delivery_guard.infrastructure.memory.replay_store import InMemoryReplayWindowStore
from delivery_guard.infrastructure.memory.resource_store import InMemoryResourceStore
from delivery_guard.infrastructure.messaging.rabbitmq_publisher import RabbitMQAlertPublisher
from delivery_guard.observability.metrics import MetricsCollector
from delivery_guard.pipeline.observer import OutcomeObserver
from delivery_guard.pipeline.pipeline import GuardPipeline
from delivery_guard.pipeline.stages import (
    IdempotencyStage,
    OwnershipStage,
    RateLimitStage,
    ReplayStage,
    RiskScreenStage,
)
from delivery_guard.risk.activity import ActivityTracker
from delivery_guard.risk.policy import RiskPolicy
from delivery_guard.risk.scorer import RiskScorer
from delivery_guard.risk.sweeper import RiskSweeper
from delivery_guard.scalability.rate_limiter import ActorRateLimiter, InMemoryRateLimitBackend
from delivery_guard.security.idempotency import IdempotencyCache, IdempotencyRepository
from delivery_guard.security.ownership import OwnershipGate
from delivery_guard.security.rbac import RBACService
from delivery_guard.security.replay_guard import ReplayGuard, ReplayWindowStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class GuardContainer:
    """Process-wide collaborators. Built once at startup and held on app.state."""

    settings: AppSettings
    store: ResourceStore
    audit_repository: AuditRepository
    audit_logger: AuditLogger
    metrics: MetricsCollector
    rbac: RBACService
    ownership_gate: OwnershipGate
    replay_guard: ReplayGuard
    idempotency_cache: IdempotencyCache
    risk_scorer: RiskScorer
    activity_tracker: ActivityTracker
    risk_sweeper: RiskSweeper
    transition_service: TransitionService
    payment_service: PaymentService
    pipeline: GuardPipeline
    payment_pipeline: GuardPipeline
    closers: List[Callable[[], Awaitable[Any]]] = field(default_factory=list)

    async def aclose(self) -> None:
        await self.risk_sweeper.stop()
        await self.audit_logger.drain()
        for close in self.closers:
            try:
                await close()
            except Exception as e:
                logger.warning("container_close_failed", extra={"error": str(e)})


def build_container(
    settings: AppSettings,
    *,
    store: Optional[ResourceStore] = None,
    audit_repository: Optional[AuditRepository] = None,
    idempotency_repository: Optional[IdempotencyRepository] = None,
    replay_store: Optional[ReplayWindowStore] = None,
    alert_publisher: Optional[AlertPublisher] = None,
    clock: Callable[[], float] = time.time,
    sleep: Sleep = asyncio.sleep,
) -> GuardContainer:
    """
    Wire the guard layer. Explicit collaborators win; otherwise backends are
    chosen from settings (memory by default).
    """
    closers: List[Callable[[], Awaitable[Any]]] = []
    sessions = None
    if settings.database_url and (
        "database" in (settings.resource_store_backend, settings.idempotency_backend)
    ):
        engine = build_engine(settings.database_url)
        sessions = build_sessionmaker(engine)
        closers.append(engine.dispose)

    if store is None:
        if settings.resource_store_backend == "database" and sessions is not None:
            store = DbResourceStore(sessions)
        else:
            store = InMemoryResourceStore()

    if audit_repository is None:
        if sessions is not None:
            audit_repository = DbAuditRepository(sessions)
        else:
            audit_repository = InMemoryAuditRepository()

    if idempotency_repository is None:
        if settings.idempotency_backend == "database" and sessions is not None:
            idempotency_repository = DbIdempotencyRepository(sessions)
        else:
            idempotency_repository = InMemoryIdempotencyRepository(clock=clock)

    if replay_store is None:
        if settings.replay_store_backend == "redis" and settings.redis_url:
            redis_client = RedisClient(settings.redis_url)
            replay_store = RedisReplayWindowStore(redis_client)
            closers.append(redis_client.close)
        else:
            replay_store = InMemoryReplayWindowStore()

    if alert_publisher is None and settings.rabbitmq_url:
        rabbit = RabbitMQAlertPublisher(settings.rabbitmq_url)
        alert_publisher = rabbit
        closers.append(rabbit.close)

    metrics = MetricsCollector()
    audit_logger = AuditLogger(audit_repository, alert_publisher=alert_publisher)
    gate = OwnershipGate(store, audit_logger)
    replay_guard = ReplayGuard(
        replay_store,
        audit_logger,
        window_seconds=settings.replay_window_seconds,
        strict_window_seconds=settings.strict_replay_window_seconds,
        clock=clock,
    )
    idempotency_cache = IdempotencyCache(
        idempotency_repository, ttl_seconds=settings.idempotency_ttl_seconds, clock=clock
    )
    scorer = RiskScorer(
        decay_interval_seconds=settings.risk_decay_interval_seconds,
        max_idle_seconds=settings.risk_record_max_idle_seconds,
        clock=clock,
    )
    activity = ActivityTracker(
        rapid_request_threshold=settings.rapid_request_threshold,
        rapid_request_window_seconds=settings.rapid_request_window_seconds,
        repeated_path_threshold=settings.repeated_path_threshold,
        repeated_path_window_seconds=settings.repeated_path_window_seconds,
        address_threshold=settings.location_address_threshold,
        address_window_seconds=settings.location_window_seconds,
        max_idle_seconds=settings.risk_record_max_idle_seconds,
        clock=clock,
    )
    policy = RiskPolicy(
        medium_delay_seconds=settings.risk_medium_delay_seconds,
        high_delay_seconds=settings.risk_high_delay_seconds,
    )
    limiter = ActorRateLimiter(
        InMemoryRateLimitBackend(),
        requests_per_window=settings.payment_rate_limit,
        window_seconds=settings.payment_rate_window_seconds,
        scope="payment",
        metrics=metrics,
    )
    observer = OutcomeObserver(scorer, metrics)

    risk_stage = RiskScreenStage(
        scorer, policy, audit_logger, metrics, clock=clock, sleep=sleep, activity=activity
    )
    ownership_stage = OwnershipStage(gate)
    replay_stage = ReplayStage(replay_guard)
    idempotency_stage = IdempotencyStage(idempotency_cache, audit_logger, metrics)

    pipeline = GuardPipeline(
        [risk_stage, ownership_stage, replay_stage, idempotency_stage],
        idempotency_cache,
        observer,
    )
    # A stored-response hit ends the run before the rate limit spends budget.
    payment_pipeline = GuardPipeline(
        [
            risk_stage,
            ownership_stage,
            replay_stage,
            idempotency_stage,
            RateLimitStage(limiter, audit_logger),
        ],
        idempotency_cache,
        observer,
    )

    return GuardContainer(
        settings=settings,
        store=store,
        audit_repository=audit_repository,
        audit_logger=audit_logger,
        metrics=metrics,
        rbac=RBACService(),
        ownership_gate=gate,
        replay_guard=replay_guard,
        idempotency_cache=idempotency_cache,
        risk_scorer=scorer,
        activity_tracker=activity,
        risk_sweeper=RiskSweeper(
            scorer, interval_seconds=settings.risk_sweep_interval_seconds, activity=activity
        ),
        transition_service=TransitionService(
            store,
            gate,
            audit_logger,
            metrics,
            amount_tolerance_minor_units=settings.amount_tolerance_minor_units,
        ),
        payment_service=PaymentService(
            store,
            audit_logger,
            metrics,
            amount_tolerance_minor_units=settings.amount_tolerance_minor_units,
        ),
        pipeline=pipeline,
        payment_pipeline=payment_pipeline,
        closers=closers,
    )
