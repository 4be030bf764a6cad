"""
streamgate - Observability Module

- Prometheus metrics (queue depth/wait, stream outcomes, fallbacks)
- OpenTelemetry spans around provider calls
- Structured JSON logging with context injection

Usage:
    from streamgate.observability import get_logger, get_metrics, setup_logging

    setup_logging(level="INFO")
    logger = get_logger(__name__)
    metrics = get_metrics()
"""

from .metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
    metrics_endpoint,
)
from .tracing import (
    TracingManager,
    get_tracer,
    setup_tracing,
    trace_provider_call,
)
from .logging import (
    StructuredLogger,
    get_logger,
    setup_logging,
    LogContext,
    TimedOperation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "setup_metrics",
    "metrics_endpoint",
    # Tracing
    "TracingManager",
    "get_tracer",
    "setup_tracing",
    "trace_provider_call",
    # Logging
    "StructuredLogger",
    "get_logger",
    "setup_logging",
    "LogContext",
    "TimedOperation",
]
