"""
Per-identifier request history for rate-shaped abuse signals.

Tracks recent (timestamp, path) pairs per identifier and, for signed-in
actors, the client addresses seen recently. Raises RAPID_REQUESTS,
REPETITIVE_REQUESTS and LOCATION_ANOMALY. Each signal is raised at most once
per its window for an identifier. Histories are bounded and swept like the
behaviour records.
"""

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Tuple

from delivery_guard.risk.models import FlagSignal, FlagType

logger = logging.getLogger(__name__)

DEFAULT_RAPID_REQUEST_THRESHOLD = 100
DEFAULT_RAPID_REQUEST_WINDOW_SECONDS = 60
DEFAULT_REPEATED_PATH_THRESHOLD = 20
DEFAULT_REPEATED_PATH_WINDOW_SECONDS = 600
DEFAULT_ADDRESS_THRESHOLD = 5
DEFAULT_ADDRESS_WINDOW_SECONDS = 86400
DEFAULT_MAX_IDLE_SECONDS = 86400
MAX_TRACKED_REQUESTS = 1000
MAX_TRACKED_ADDRESSES = 50


@dataclass
class ActivityHistory:
    """Mutable per-identifier history. Guarded by its own lock; owned by ActivityTracker."""

    identifier: str
    last_seen: float
    requests: Deque[Tuple[float, str]] = field(
        default_factory=lambda: deque(maxlen=MAX_TRACKED_REQUESTS)
    )
    # address -> last time seen
    addresses: Dict[str, float] = field(default_factory=dict)
    # signal key -> time raised
    raised: Dict[str, float] = field(default_factory=dict)
    evicted: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class ActivityTracker:
    """Request-rate, repeated-path and address-spread detection per identifier (user id, else IP)."""

    def __init__(
        self,
        *,
        rapid_request_threshold: int = DEFAULT_RAPID_REQUEST_THRESHOLD,
        rapid_request_window_seconds: int = DEFAULT_RAPID_REQUEST_WINDOW_SECONDS,
        repeated_path_threshold: int = DEFAULT_REPEATED_PATH_THRESHOLD,
        repeated_path_window_seconds: int = DEFAULT_REPEATED_PATH_WINDOW_SECONDS,
        address_threshold: int = DEFAULT_ADDRESS_THRESHOLD,
        address_window_seconds: int = DEFAULT_ADDRESS_WINDOW_SECONDS,
        max_idle_seconds: int = DEFAULT_MAX_IDLE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rapid_threshold = rapid_request_threshold
        self._rapid_window = rapid_request_window_seconds
        self._path_threshold = repeated_path_threshold
        self._path_window = repeated_path_window_seconds
        self._address_threshold = address_threshold
        self._address_window = address_window_seconds
        self._max_idle = max_idle_seconds
        self._history_window = max(rapid_request_window_seconds, repeated_path_window_seconds)
        self._clock = clock
        self._histories: Dict[str, ActivityHistory] = {}
        self._map_lock = threading.Lock()

    def __len__(self) -> int:
        with self._map_lock:
            return len(self._histories)

    def record(
        self,
        identifier: str,
        path: str,
        ip_address: Optional[str] = None,
        *,
        track_address: bool = True,
    ) -> List[FlagSignal]:
        """
        Append one request and return the signals it trips. Addresses are only
        tracked when the identifier is a signed-in actor rather than an IP.
        """
        now = self._clock()
        while True:
            history = self._get_or_create(identifier, now)
            with history.lock:
                if history.evicted:
                    continue
                history.last_seen = now
                history.requests.append((now, path))
                self._prune_requests(history, now)
                signals = self._rapid(history, now) + self._repeated(history, path, now)
                if track_address and ip_address:
                    signals += self._address_spread(history, ip_address, now)
            break
        if signals:
            logger.info(
                "activity_signals_raised",
                extra={"risk_identifier": identifier, "flags": [f.value for f, _ in signals]},
            )
        return signals

    def sweep(self) -> int:
        """Evict histories idle past max_idle and forget stale raised markers. Returns evicted count."""
        cutoff = self._clock() - self._max_idle
        evicted = 0
        with self._map_lock:
            for identifier, history in list(self._histories.items()):
                with history.lock:
                    if history.last_seen < cutoff:
                        history.evicted = True
                        del self._histories[identifier]
                        evicted += 1
                    else:
                        history.raised = {k: ts for k, ts in history.raised.items() if ts >= cutoff}
        if evicted:
            logger.info("activity_histories_evicted", extra={"evicted": evicted})
        return evicted

    def _get_or_create(self, identifier: str, now: float) -> ActivityHistory:
        with self._map_lock:
            history = self._histories.get(identifier)
            if history is None:
                history = ActivityHistory(identifier=identifier, last_seen=now)
                self._histories[identifier] = history
            return history

    def _prune_requests(self, history: ActivityHistory, now: float) -> None:
        cutoff = now - self._history_window
        while history.requests and history.requests[0][0] <= cutoff:
            history.requests.popleft()

    def _rapid(self, history: ActivityHistory, now: float) -> List[FlagSignal]:
        cutoff = now - self._rapid_window
        count = sum(1 for ts, _ in history.requests if ts > cutoff)
        if count <= self._rapid_threshold:
            return []
        if not self._claim(history, FlagType.RAPID_REQUESTS.value, now, self._rapid_window):
            return []
        return [(FlagType.RAPID_REQUESTS, {"count": count, "threshold": self._rapid_threshold})]

    def _repeated(self, history: ActivityHistory, path: str, now: float) -> List[FlagSignal]:
        cutoff = now - self._path_window
        counts = Counter(p for ts, p in history.requests if ts > cutoff)
        count = counts[path]
        if count <= self._path_threshold:
            return []
        key = f"{FlagType.REPETITIVE_REQUESTS.value}:{path}"
        if not self._claim(history, key, now, self._path_window):
            return []
        return [(FlagType.REPETITIVE_REQUESTS, {"path": path, "count": count})]

    def _address_spread(self, history: ActivityHistory, ip_address: str, now: float) -> List[FlagSignal]:
        cutoff = now - self._address_window
        history.addresses = {ip: ts for ip, ts in history.addresses.items() if ts > cutoff}
        history.addresses[ip_address] = now
        if len(history.addresses) > MAX_TRACKED_ADDRESSES:
            oldest = sorted(history.addresses, key=history.addresses.__getitem__)
            for ip in oldest[: len(history.addresses) - MAX_TRACKED_ADDRESSES]:
                del history.addresses[ip]
        distinct = len(history.addresses)
        if distinct <= self._address_threshold:
            return []
        if not self._claim(history, FlagType.LOCATION_ANOMALY.value, now, self._address_window):
            return []
        return [(FlagType.LOCATION_ANOMALY, {"distinct_addresses": distinct})]

    @staticmethod
    def _claim(history: ActivityHistory, key: str, now: float, window: int) -> bool:
        """True if the signal under key has not been raised within window."""
        last = history.raised.get(key)
        if last is not None and now - last < window:
            return False
        history.raised[key] = now
        return True
