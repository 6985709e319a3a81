"""
Adaptive per-actor risk scorer.

Constructed once at process start and passed to whoever needs it; there is no
module-level state. The record map is guarded by a map lock held only for
lookup/insert/evict; each record is mutated under its own lock so concurrent
flags for one actor never lose increments.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from delivery_guard.risk.models import (
    BehaviorRecord,
    Flag,
    FlagSignal,
    FlagType,
    RiskAssessment,
    RiskTier,
    tier_for,
)

logger = logging.getLogger(__name__)

DEFAULT_DECAY_INTERVAL_SECONDS = 60
DEFAULT_MAX_IDLE_SECONDS = 86400
DEFAULT_MAX_FLAGS = 500
ASSESSMENT_FLAG_LIMIT = 10


class RiskScorer:
    """Decaying abuse score per actor identifier (user id, else IP)."""

    def __init__(
        self,
        *,
        decay_interval_seconds: int = DEFAULT_DECAY_INTERVAL_SECONDS,
        max_idle_seconds: int = DEFAULT_MAX_IDLE_SECONDS,
        max_flags: int = DEFAULT_MAX_FLAGS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._decay_interval = decay_interval_seconds
        self._max_idle = max_idle_seconds
        self._max_flags = max_flags
        self._clock = clock
        self._records: Dict[str, BehaviorRecord] = {}
        self._map_lock = threading.Lock()

    def __len__(self) -> int:
        with self._map_lock:
            return len(self._records)

    def observe(self, identifier: str, signals: Iterable[FlagSignal] = ()) -> RiskAssessment:
        """
        Touch the actor's record: decay first, then add the points of every
        signal and recompute the tier. Called once per screened request.
        """
        pending: List[FlagSignal] = list(signals)
        now = self._clock()
        while True:
            record = self._get_or_create(identifier, now)
            with record.lock:
                if record.evicted:
                    continue
                self._decay(record, now)
                added = self._add_flags(record, pending, now)
                record.last_activity = now
                snapshot = self._snapshot(record, added)
            break
        if added:
            logger.info(
                "risk_flags_added",
                extra={
                    "risk_identifier": identifier,
                    "flags": [f.value for f in added],
                    "score": snapshot.score,
                    "tier": snapshot.tier.value,
                },
            )
        return snapshot

    def flag(
        self,
        identifier: str,
        flag_type: FlagType,
        details: Optional[Mapping[str, Any]] = None,
    ) -> RiskAssessment:
        """Record a single flagged event reported outside the request screen."""
        return self.observe(identifier, [(flag_type, details or {})])

    def assessment(self, identifier: str) -> RiskAssessment:
        """Current tier, score and last flags. Unknown identifiers read as LOW/0."""
        with self._map_lock:
            record = self._records.get(identifier)
        if record is None:
            return RiskAssessment(identifier=identifier, tier=RiskTier.LOW, score=0)
        now = self._clock()
        with record.lock:
            if record.evicted:
                return RiskAssessment(identifier=identifier, tier=RiskTier.LOW, score=0)
            self._decay(record, now)
            return self._snapshot(record, [])

    def sweep(self) -> int:
        """Evict records idle past max_idle and prune stale flags. Returns evicted count."""
        now = self._clock()
        cutoff = now - self._max_idle
        evicted = 0
        with self._map_lock:
            for identifier, record in list(self._records.items()):
                with record.lock:
                    if record.last_activity < cutoff:
                        record.evicted = True
                        del self._records[identifier]
                        evicted += 1
                    else:
                        record.flags = [f for f in record.flags if f.timestamp >= cutoff]
        if evicted:
            logger.info("risk_records_evicted", extra={"evicted": evicted})
        return evicted

    def _get_or_create(self, identifier: str, now: float) -> BehaviorRecord:
        with self._map_lock:
            record = self._records.get(identifier)
            if record is None:
                record = BehaviorRecord(identifier=identifier, last_activity=now, last_decay=now)
                self._records[identifier] = record
            return record

    def _decay(self, record: BehaviorRecord, now: float) -> None:
        """One point per whole elapsed interval once more than one interval has passed."""
        elapsed = now - record.last_decay
        if elapsed <= self._decay_interval:
            return
        steps = int(elapsed // self._decay_interval)
        record.score = max(0, record.score - steps)
        record.last_decay += steps * self._decay_interval
        record.tier = tier_for(record.score)

    def _add_flags(
        self, record: BehaviorRecord, signals: List[FlagSignal], now: float
    ) -> List[FlagType]:
        added: List[FlagType] = []
        for flag_type, details in signals:
            record.flags.append(Flag(flag_type=flag_type, timestamp=now, details=dict(details)))
            record.score += flag_type.points
            added.append(flag_type)
        if len(record.flags) > self._max_flags:
            del record.flags[: len(record.flags) - self._max_flags]
        record.tier = tier_for(record.score)
        return added

    @staticmethod
    def _snapshot(record: BehaviorRecord, added: List[FlagType]) -> RiskAssessment:
        flags: Tuple[Flag, ...] = tuple(record.flags[-ASSESSMENT_FLAG_LIMIT:])
        return RiskAssessment(
            identifier=record.identifier,
            tier=record.tier,
            score=record.score,
            flags=flags,
            last_activity=record.last_activity,
            new_flags=tuple(added),
        )
