"""Feeds request outcomes back into the risk scorer after the response is decided."""

import asyncio
import logging
from typing import Any, Optional, Tuple, Type

from delivery_guard.application.transition_service import TransitionResult
from delivery_guard.domain.exceptions import (
    AmountMismatchError,
    DomainValidationError,
    InvalidTransitionError,
    PaymentPreconditionError,
    UnauthorizedTransitionError,
)
from delivery_guard.domain.models.resource import Payment, PaymentState
from delivery_guard.observability.metrics import MetricsCollector
from delivery_guard.pipeline.context import GuardContext
from delivery_guard.risk.models import FlagType
from delivery_guard.risk.scorer import RiskScorer
from delivery_guard.security.exceptions import (
    ForbiddenError,
    HeaderRequiredError,
    RateLimitExceededError,
)

logger = logging.getLogger(__name__)

# Rejection -> flag raised against the caller.
_ERROR_FLAGS: Tuple[Tuple[Tuple[Type[BaseException], ...], FlagType], ...] = (
    ((ForbiddenError, UnauthorizedTransitionError), FlagType.UNAUTHORIZED_ACCESS),
    (
        (
            InvalidTransitionError,
            AmountMismatchError,
            HeaderRequiredError,
            PaymentPreconditionError,
            DomainValidationError,
        ),
        FlagType.INVALID_INPUT,
    ),
    ((RateLimitExceededError,), FlagType.RAPID_REQUESTS),
)


class OutcomeObserver:
    """Runs after the outcome is known; scheduled on the loop so it never delays the response."""

    def __init__(self, scorer: RiskScorer, metrics: MetricsCollector) -> None:
        self._scorer = scorer
        self._metrics = metrics

    def schedule(
        self,
        ctx: GuardContext,
        value: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        asyncio.get_running_loop().call_soon(self.observe, ctx, value, error)

    def observe(
        self,
        ctx: GuardContext,
        value: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        try:
            if error is not None:
                self._observe_error(ctx, error)
            else:
                self._observe_success(value)
        except Exception as e:
            logger.warning("outcome_observation_failed", extra={"error": str(e)})

    def _observe_error(self, ctx: GuardContext, error: BaseException) -> None:
        self._metrics.increment("guard_rejections", label="error", label_value=type(error).__name__)
        for error_types, flag_type in _ERROR_FLAGS:
            if isinstance(error, error_types):
                self._scorer.flag(
                    ctx.risk_identifier,
                    flag_type,
                    {"path": ctx.path, "error": type(error).__name__},
                )
                return

    def _observe_success(self, value: Any) -> None:
        if not isinstance(value, TransitionResult):
            return
        resource = value.resource
        if isinstance(resource, Payment) and value.state is PaymentState.FAILED:
            self._scorer.flag(
                resource.customer_id,
                FlagType.PAYMENT_FAILURE,
                {"payment_id": resource.resource_id, "amount": str(resource.amount)},
            )
