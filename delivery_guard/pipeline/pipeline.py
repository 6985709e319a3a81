"""Explicit, ordered guard pipeline wrapped around one state-changing operation."""

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, Tuple

from delivery_guard.pipeline.context import GuardContext
from delivery_guard.pipeline.observer import OutcomeObserver
from delivery_guard.pipeline.stages import GuardStage
from delivery_guard.security.idempotency import IdempotencyCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    """What the guarded operation produced: HTTP status, serialized body, domain value."""

    status_code: int
    body: str
    value: Any = None


@dataclass(frozen=True)
class GuardOutcome:
    status_code: int
    body: str
    replayed: bool = False
    value: Any = None


Operation = Callable[[GuardContext], Awaitable[OperationResult]]


class GuardPipeline:
    """
    Stages run in the given order; any stage may raise to end the request.
    After the stages: the operation, idempotent storage of a 2xx result, and
    scheduling of outcome observation (errors included).
    """

    def __init__(
        self,
        stages: Sequence[GuardStage],
        idempotency_cache: IdempotencyCache,
        observer: OutcomeObserver,
    ) -> None:
        self._stages = tuple(stages)
        self._cache = idempotency_cache
        self._observer = observer

    @property
    def stage_names(self) -> Tuple[str, ...]:
        return tuple(stage.name for stage in self._stages)

    async def run(self, ctx: GuardContext, operation: Operation) -> GuardOutcome:
        try:
            async with AsyncExitStack() as stack:
                ctx.exit_stack = stack
                outcome = await self._run_stages_and_operation(ctx, operation)
        except Exception as e:
            self._observer.schedule(ctx, error=e)
            raise
        finally:
            ctx.exit_stack = None
        self._observer.schedule(ctx, value=outcome.value)
        return outcome

    async def _run_stages_and_operation(self, ctx: GuardContext, operation: Operation) -> GuardOutcome:
        for stage in self._stages:
            await stage(ctx)
            if ctx.cached_response is not None:
                logger.info("guard_short_circuit", extra={"stage": stage.name})
                return GuardOutcome(
                    status_code=ctx.cached_response.status_code,
                    body=ctx.cached_response.body,
                    replayed=True,
                )

        result = await operation(ctx)
        status_code, body = result.status_code, result.body
        if ctx.idempotency_key is not None and 200 <= status_code < 300:
            status_code, body = await self._remember(ctx, ctx.idempotency_key, status_code, body)
        return GuardOutcome(status_code=status_code, body=body, value=result.value)

    async def _remember(
        self, ctx: GuardContext, key: str, status_code: int, body: str
    ) -> Tuple[int, str]:
        try:
            stored = await self._cache.store(ctx.actor.actor_id, key, status_code, body)
        except Exception as e:
            # The operation already committed; report its result.
            logger.error("idempotency_store_failed", extra={"idempotency_key": key, "error": str(e)})
            return status_code, body
        return stored.status_code, stored.body
