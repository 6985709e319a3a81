"""Metrics collector tests: counters, labelled counters, histograms, export."""

from delivery_guard.observability.metrics import MetricsCollector


def test_counters_and_labels():
    metrics = MetricsCollector()
    metrics.increment("payments_created")
    metrics.increment("payments_created")
    metrics.increment("transitions_committed", label="kind", label_value="delivery")
    assert metrics.counter("payments_created") == 2
    assert metrics.counter("transitions_committed", label="kind", label_value="delivery") == 1
    assert metrics.counter("transitions_committed", label="kind", label_value="payment") == 0


def test_export_metrics():
    metrics = MetricsCollector()
    metrics.increment("risk_blocks")
    metrics.increment("guard_rejections", label="error", label_value="ForbiddenError")
    metrics.observe_latency("request_latency_ms", 12.0)
    metrics.observe_latency("request_latency_ms", 30.0)
    exported = metrics.export_metrics()
    assert exported["counters"] == {"risk_blocks": 1}
    assert exported["counters_by_labels"] == {"guard_rejections": {"error=ForbiddenError": 1}}
    assert exported["histograms"]["request_latency_ms"] == {"count": 2, "sum": 42.0, "max": 30.0}


def test_reset():
    metrics = MetricsCollector()
    metrics.increment("x")
    metrics.reset()
    assert metrics.export_metrics() == {"counters": {}, "counters_by_labels": {}, "histograms": {}}
