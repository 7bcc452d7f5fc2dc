"""
Prometheus metrics for the request gateway.
"""

from typing import Dict, Any, Optional
import threading

from prometheus_client import Counter, Histogram, CollectorRegistry


class MetricsCollector:
    """Per-gateway Prometheus metrics.

    Each collector owns its registry unless one is supplied, so several
    gateways can live in one process without clashing on metric names.
    """

    def __init__(self, service_name: str = "gateway", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up gateway metrics."""
        self._metrics["gateway_requests_total"] = Counter(
            "gateway_requests_total",
            "Total gateway requests by outcome",
            ["method", "endpoint", "outcome"],
            registry=self.registry
        )

        self._metrics["gateway_request_duration_seconds"] = Histogram(
            "gateway_request_duration_seconds",
            "Gateway request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["gateway_cache_hits_total"] = Counter(
            "gateway_cache_hits_total",
            "Total response cache hits",
            ["endpoint"],
            registry=self.registry
        )

        self._metrics["gateway_cache_misses_total"] = Counter(
            "gateway_cache_misses_total",
            "Total response cache misses",
            ["endpoint"],
            registry=self.registry
        )

        self._metrics["gateway_retries_total"] = Counter(
            "gateway_retries_total",
            "Total retry attempts after a failed dispatch",
            ["endpoint"],
            registry=self.registry
        )

        self._metrics["gateway_rate_limit_rejections_total"] = Counter(
            "gateway_rate_limit_rejections_total",
            "Total requests rejected by client-side rate limiting",
            ["endpoint"],
            registry=self.registry
        )

        self._metrics["gateway_queue_tasks_total"] = Counter(
            "gateway_queue_tasks_total",
            "Total queued tasks processed by status",
            ["status"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def get_sample_value(self, name: str, **labels) -> Optional[float]:
        """Read a sample value from this collector's registry."""
        return self.registry.get_sample_value(name, labels)

    def record_request(self, method: str, endpoint: str, outcome: str, duration: float):
        """Record a completed gateway request."""
        self._metrics["gateway_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            outcome=outcome
        ).inc()

        self._metrics["gateway_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def increment_counter(self, metric_name: str, amount: float = 1, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            with self._lock:
                self._metrics[metric_name].labels(**labels).inc(amount)
