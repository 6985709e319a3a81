"""Observability layer: in-process metrics. No external SaaS."""

from delivery_guard.observability.metrics import MetricsCollector

__all__ = [
    "MetricsCollector",
]
