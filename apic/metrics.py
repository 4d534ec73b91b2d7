"""
Prometheus metrics for the request pipeline.
"""

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Request, retry, cache and timeout metrics for one client.

    Each collector owns its registry unless one is passed in, so several
    clients can live in one process without duplicate registrations.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = "apic"):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.namespace = namespace
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up pipeline metrics."""
        self._metrics["requests_total"] = Counter(
            "requests_total",
            "Total HTTP requests sent",
            ["method", "status"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["request_duration_seconds"] = Histogram(
            "request_duration_seconds",
            "HTTP request duration in seconds",
            ["method"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["retries_total"] = Counter(
            "retries_total",
            "Failed attempts handled by the retry orchestrator",
            ["reason"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["cache_events_total"] = Counter(
            "cache_events_total",
            "Response cache events",
            ["event"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["timeouts_total"] = Counter(
            "timeouts_total",
            "Requests abandoned after their deadline",
            ["method"],
            namespace=self.namespace,
            registry=self.registry
        )

    def record_request(self, method: str, status: str, duration: float):
        """Record one network exchange."""
        self._metrics["requests_total"].labels(method=method, status=status).inc()
        self._metrics["request_duration_seconds"].labels(method=method).observe(duration)

    def record_retry(self, reason: str):
        self._metrics["retries_total"].labels(reason=reason).inc()

    def record_cache_event(self, event: str):
        """Record a cache ``hit``, ``miss``, ``store`` or ``invalidate``."""
        self._metrics["cache_events_total"].labels(event=event).inc()

    def record_timeout(self, method: str):
        self._metrics["timeouts_total"].labels(method=method).inc()

    def sample(self, name: str, **labels) -> float:
        """Current value of a sample, 0.0 when it has not been recorded."""
        value = self.registry.get_sample_value(f"{self.namespace}_{name}", labels)
        return value or 0.0

    def get_metrics(self) -> bytes:
        """Prometheus exposition text for this collector."""
        return generate_latest(self.registry)
