"""
streamgate - OpenTelemetry Tracing

Spans around provider calls (stream sessions, catalog fetches, token
exchanges).

Usage:
    from streamgate.observability.tracing import setup_tracing, trace_provider_call

    setup_tracing(service_name="streamgate", console_export=True)

    with trace_provider_call("cohere", "command-r", "list_models") as span:
        ...
"""

import os
from contextlib import contextmanager
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.trace import Span, SpanKind, Status, StatusCode


class TracingManager:
    """
    Central tracing manager.

    Singleton pattern for global access.
    """

    _instance: Optional["TracingManager"] = None

    def __init__(
        self,
        service_name: str = "streamgate",
        service_version: str = "1.0.0",
        console_export: bool = False,
    ):
        self.service_name = service_name
        self.service_version = service_version

        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
        })

        self.provider = TracerProvider(resource=resource)

        if console_export:
            self.provider.add_span_processor(
                SimpleSpanProcessor(ConsoleSpanExporter())
            )

        self.tracer = self.provider.get_tracer(service_name, service_version)

    @classmethod
    def get_instance(cls) -> "TracingManager":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_tracer(self) -> trace.Tracer:
        return self.tracer

    def start_client_span(self, name: str, attributes: Optional[Dict[str, Any]] = None):
        """Start a current client span for an outgoing call."""
        return self.tracer.start_as_current_span(
            name,
            kind=SpanKind.CLIENT,
            attributes=attributes,
        )

    def start_detached_span(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> Span:
        """
        Start a span that is not attached to the current context.

        Used by stream sessions, whose lifetime spans several `yield`s of an
        async generator; the caller must call `end()`.
        """
        return self.tracer.start_span(name, kind=SpanKind.CLIENT, attributes=attributes)

    def shutdown(self):
        self.provider.shutdown()


_tracing_instance: Optional[TracingManager] = None


def setup_tracing(
    service_name: str = "streamgate",
    service_version: str = "1.0.0",
    console_export: bool = False,
) -> TracingManager:
    """
    Setup tracing.

    `OTEL_CONSOLE_EXPORT=true` enables the console exporter.
    """
    global _tracing_instance

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    _tracing_instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        console_export=console_export,
    )
    TracingManager._instance = _tracing_instance
    return _tracing_instance


def get_tracing_manager() -> TracingManager:
    """Get the tracing manager, creating a default one on first use."""
    global _tracing_instance
    if _tracing_instance is None:
        _tracing_instance = TracingManager.get_instance()
    return _tracing_instance


def get_tracer() -> trace.Tracer:
    return get_tracing_manager().get_tracer()


def provider_span_attributes(provider: str, model: str, operation: str) -> Dict[str, Any]:
    return {
        "ai.provider": provider,
        "ai.model": model or "",
        "ai.operation": operation,
    }


def start_stream_span(provider: str, model: str, request_id: str) -> Span:
    """Start the detached span covering one stream session."""
    attributes = provider_span_attributes(provider, model, "stream")
    attributes["streamgate.request_id"] = request_id
    return get_tracing_manager().start_detached_span(f"{provider}.stream", attributes)


def finish_span(span: Span, error: Optional[BaseException] = None):
    """Set the final status on a span and end it."""
    if error is not None:
        span.record_exception(error)
        span.set_status(Status(StatusCode.ERROR, str(error)))
    else:
        span.set_status(Status(StatusCode.OK))
    span.end()


@contextmanager
def trace_provider_call(provider: str, model: str, operation: str):
    """
    Context manager for tracing a one-shot provider call.

    Usage:
        with trace_provider_call("groq", "", "list_models") as span:
            models = await fetch()
            span.set_attribute("models.count", len(models))
    """
    with get_tracing_manager().start_client_span(
        name=f"{provider}.{operation}",
        attributes=provider_span_attributes(provider, model, operation),
    ) as span:
        yield span
