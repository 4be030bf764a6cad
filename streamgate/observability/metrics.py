"""
streamgate - Prometheus Metrics

Metrics exposed:
- streamgate_queue_depth: Gauge of tasks waiting in a request queue
- streamgate_queue_wait_seconds: Histogram of time from submission to dispatch
- streamgate_stream_sessions_total: Counter of finished stream sessions by outcome
- streamgate_stream_events_total: Counter of classified stream events by type
- streamgate_upstream_errors_total: Counter of non-2xx upstream responses
- streamgate_catalog_fallbacks_total: Counter of static model catalog fallbacks
- streamgate_credential_exchanges_total: Counter of session token exchanges

Usage:
    from streamgate.observability.metrics import get_metrics, metrics_endpoint

    metrics = get_metrics()
    metrics.record_session(provider="cohere", outcome="done")

    @app.get("/metrics")
    async def metrics():
        return metrics_endpoint()
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)
from fastapi import Response


class MetricsCollector:
    """
    Central metrics collector using the Prometheus client.

    Collectors are bound to the registry given at construction time, so tests
    can use a private `CollectorRegistry`.
    """

    _instance: Optional["MetricsCollector"] = None

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.queue_depth = Gauge(
            "streamgate_queue_depth",
            "Number of tasks waiting in a request queue",
            labelnames=["queue"],
            registry=registry,
        )

        self.queue_wait = Histogram(
            "streamgate_queue_wait_seconds",
            "Time between task submission and dispatch",
            labelnames=["queue"],
            buckets=(0.0, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, float("inf")),
            registry=registry,
        )

        self.stream_sessions = Counter(
            "streamgate_stream_sessions_total",
            "Finished stream sessions",
            labelnames=["provider", "outcome"],  # outcome = done/error/cancelled
            registry=registry,
        )

        self.stream_events = Counter(
            "streamgate_stream_events_total",
            "Classified stream events",
            labelnames=["provider", "type"],
            registry=registry,
        )

        self.upstream_errors = Counter(
            "streamgate_upstream_errors_total",
            "Non-2xx responses received from upstream backends",
            labelnames=["provider", "status"],
            registry=registry,
        )

        self.catalog_fallbacks = Counter(
            "streamgate_catalog_fallbacks_total",
            "Model catalog requests answered from the static fallback list",
            labelnames=["provider"],
            registry=registry,
        )

        self.credential_exchanges = Counter(
            "streamgate_credential_exchanges_total",
            "Session token exchanges",
            labelnames=["provider", "outcome"],  # outcome = exchanged/missing_field/failed
            registry=registry,
        )

    @classmethod
    def get_instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def set_queue_depth(self, queue: str, depth: int):
        self.queue_depth.labels(queue=queue).set(depth)

    def record_queue_wait(self, queue: str, seconds: float):
        self.queue_wait.labels(queue=queue).observe(max(0.0, seconds))

    def record_session(self, provider: str, outcome: str):
        self.stream_sessions.labels(provider=provider, outcome=outcome).inc()

    def record_event(self, provider: str, event_type: str):
        self.stream_events.labels(provider=provider, type=event_type).inc()

    def record_upstream_error(self, provider: str, status: int):
        self.upstream_errors.labels(provider=provider, status=str(status)).inc()

    def record_catalog_fallback(self, provider: str):
        self.catalog_fallbacks.labels(provider=provider).inc()

    def record_credential_exchange(self, provider: str, outcome: str):
        self.credential_exchanges.labels(provider=provider, outcome=outcome).inc()


_metrics_instance: Optional[MetricsCollector] = None


def setup_metrics(registry: CollectorRegistry = REGISTRY) -> MetricsCollector:
    """
    Setup metrics collection.

    Safe to call multiple times with the same registry.
    """
    global _metrics_instance

    if _metrics_instance is not None and _metrics_instance.registry is registry:
        return _metrics_instance

    _metrics_instance = MetricsCollector(registry)
    MetricsCollector._instance = _metrics_instance
    return _metrics_instance


def get_metrics() -> MetricsCollector:
    """Get the metrics collector, creating the default one on first use."""
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = MetricsCollector.get_instance()
    return _metrics_instance


def metrics_endpoint() -> Response:
    """
    Generate Prometheus metrics endpoint response.

    Usage:
        @app.get("/metrics")
        async def metrics():
            return metrics_endpoint()
    """
    registry = _metrics_instance.registry if _metrics_instance is not None else REGISTRY
    return Response(
        content=generate_latest(registry),
        media_type=CONTENT_TYPE_LATEST,
    )
