"""Prometheus-style metrics collector. Thread-safe, in-memory. No real Prometheus dependency."""

import threading
from typing import Any


class MetricsCollector:
    """
    In-memory registry of counters and latency histograms.
    Counters may carry one label (e.g. kind=delivery, reason=nonce_reused).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}
        # name -> {"label=value" -> count}
        self._counters_by_labels: dict[str, dict[str, float]] = {}
        self._histograms: dict[str, list[float]] = {}

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        label: str | None = None,
        label_value: str | None = None,
    ) -> None:
        """Increment a counter. With label/label_value the dimensional series is bumped instead."""
        with self._lock:
            if label is not None and label_value is not None:
                series = self._counters_by_labels.setdefault(name, {})
                key = f"{label}={label_value}"
                series[key] = series.get(key, 0) + value
            else:
                self._counters[name] = self._counters.get(name, 0) + value

    def observe_latency(self, name: str, latency_ms: float) -> None:
        with self._lock:
            self._histograms.setdefault(name, []).append(latency_ms)

    def counter(self, name: str, *, label: str | None = None, label_value: str | None = None) -> float:
        with self._lock:
            if label is not None and label_value is not None:
                return self._counters_by_labels.get(name, {}).get(f"{label}={label_value}", 0)
            return self._counters.get(name, 0)

    def export_metrics(self) -> dict[str, Any]:
        """Export all metrics as a dict (Prometheus-style summary for histograms)."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "counters_by_labels": {
                    k: dict(v) for k, v in self._counters_by_labels.items()
                },
                "histograms": {
                    k: {
                        "count": len(v),
                        "sum": sum(v),
                        "max": max(v) if v else 0.0,
                    }
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._counters_by_labels.clear()
            self._histograms.clear()
