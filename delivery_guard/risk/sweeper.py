"""Periodic risk-record sweep as an asyncio background task."""

import asyncio
import logging
from typing import Optional

from delivery_guard.risk.activity import ActivityTracker
from delivery_guard.risk.scorer import RiskScorer

logger = logging.getLogger(__name__)


class RiskSweeper:
    """
    Runs RiskScorer.sweep (and ActivityTracker.sweep when given) every interval
    until stopped. Started from the app lifespan.
    """

    def __init__(
        self,
        scorer: RiskScorer,
        interval_seconds: float = 3600,
        activity: Optional[ActivityTracker] = None,
    ) -> None:
        self._scorer = scorer
        self._activity = activity
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def sweep_once(self) -> None:
        self._scorer.sweep()
        if self._activity is not None:
            self._activity.sweep()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception as e:
                logger.warning("risk_sweep_failed", extra={"error": str(e)})
