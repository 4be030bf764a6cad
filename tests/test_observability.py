"""
streamgate - Observability Tests

Verifies:
- JSON log formatting with context injection and secret redaction
- Structured logger keyword extras
- Prometheus collectors fed by queues and streams
- Span helpers
"""

import json
import logging

import pytest

from streamgate.core.models import StreamEvent
from streamgate.observability import (
    LogContext,
    StructuredLogger,
    TimedOperation,
    get_tracer,
    metrics_endpoint,
    setup_tracing,
    trace_provider_call,
)
from streamgate.observability.logging import JSONFormatter
from streamgate.observability.tracing import finish_span, start_stream_span
from streamgate.routing.queue import RequestQueue
from streamgate.streaming import EventStream


class ListHandler(logging.Handler):
    """Collects formatted records."""

    def __init__(self):
        super().__init__()
        self.setFormatter(JSONFormatter())
        self.lines = []

    def emit(self, record):
        self.lines.append(json.loads(self.format(record)))


@pytest.fixture
def captured():
    handler = ListHandler()
    logger = logging.getLogger("streamgate.test_capture")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield StructuredLogger(logger), handler.lines
    logger.removeHandler(handler)
    LogContext.clear()


# ============================================================
# Logging
# ============================================================

class TestStructuredLogging:
    """Test JSON output and redaction."""

    def test_keyword_extras_become_fields(self, captured):
        logger, lines = captured
        logger.info("Opening stream", provider="cohere", messages=3)

        assert lines[0]["message"] == "Opening stream"
        assert lines[0]["level"] == "INFO"
        assert lines[0]["provider"] == "cohere"
        assert lines[0]["messages"] == 3

    def test_sensitive_fields_are_redacted(self, captured):
        logger, lines = captured
        logger.info(
            "Calling backend",
            credential="eyJsecret",
            session_token="abc",
            Cookie="a=b",
            api_key="sk-live",
            hint="eyJh...(40 chars)",
        )

        record = lines[0]
        for key in ("credential", "session_token", "Cookie", "api_key"):
            assert record[key] == "[REDACTED]"
        assert record["hint"] == "eyJh...(40 chars)"
        assert "eyJsecret" not in json.dumps(record)

    def test_context_is_injected(self, captured):
        logger, lines = captured
        LogContext.set_current(LogContext(request_id="req_ctx", provider="groq", model="llama"))

        logger.warning("Stream failed")

        assert lines[0]["request_id"] == "req_ctx"
        assert lines[0]["provider"] == "groq"
        assert lines[0]["model"] == "llama"

    def test_timed_operation(self, captured):
        logger, lines = captured
        with TimedOperation("list_models", logger, log_level=logging.INFO, extra={"provider": "groq"}) as op:
            pass

        assert op.duration_ms is not None
        assert lines[0]["message"] == "list_models completed"
        assert lines[0]["operation"] == "list_models"

    def test_timed_operation_failure(self, captured):
        logger, lines = captured
        with pytest.raises(RuntimeError):
            with TimedOperation("list_models", logger):
                raise RuntimeError("boom")

        assert lines[0]["level"] == "ERROR"
        assert lines[0]["error"] == "boom"


# ============================================================
# Metrics
# ============================================================

class TestMetrics:
    """Test collectors fed by the runtime."""

    @pytest.mark.asyncio
    async def test_queue_depth_and_wait(self, metrics_registry):
        queue = RequestQueue("api.example.com", min_interval=0)

        async def run():
            return 1

        await queue.run(run)

        assert metrics_registry.get_sample_value(
            "streamgate_queue_depth", {"queue": "api.example.com"}
        ) == 0.0
        assert metrics_registry.get_sample_value(
            "streamgate_queue_wait_seconds_count", {"queue": "api.example.com"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_session_outcome_and_events(self, metrics_registry):
        async def source(session):
            yield StreamEvent.content("a")
            yield StreamEvent.content("b")

        stream = EventStream(source, provider="cohere", queue=RequestQueue(min_interval=0))
        await stream.collect()

        assert metrics_registry.get_sample_value(
            "streamgate_stream_sessions_total", {"provider": "cohere", "outcome": "done"}
        ) == 1.0
        assert metrics_registry.get_sample_value(
            "streamgate_stream_events_total", {"provider": "cohere", "type": "content"}
        ) == 2.0
        assert metrics_registry.get_sample_value(
            "streamgate_stream_events_total", {"provider": "cohere", "type": "done"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_upstream_errors_counted(self, metrics_registry, backend):
        import httpx
        from streamgate.core.models import Message, SendRequest

        backend.on("POST", "/v1/chat/completions", lambda r: httpx.Response(429, text="slow down"))
        request = SendRequest(credential="k", messages=(Message.user("Hi"),))

        await backend.provider("cerebras").send_message(request).collect()

        assert metrics_registry.get_sample_value(
            "streamgate_upstream_errors_total", {"provider": "cerebras", "status": "429"}
        ) == 1.0
        assert metrics_registry.get_sample_value(
            "streamgate_stream_sessions_total", {"provider": "cerebras", "outcome": "error"}
        ) == 1.0

    def test_metrics_endpoint(self, metrics_registry):
        response = metrics_endpoint()
        assert b"streamgate_stream_sessions_total" in response.body


# ============================================================
# Tracing
# ============================================================

class TestTracing:
    """Test span helpers."""

    def test_provider_call_span(self):
        manager = setup_tracing(service_name="streamgate-test")
        with trace_provider_call("groq", "llama", "list_models") as span:
            span.set_attribute("models.count", 3)
            assert span.is_recording()
        assert get_tracer() is manager.tracer

    def test_stream_span_records_error(self):
        setup_tracing(service_name="streamgate-test")
        span = start_stream_span("cohere", "command", "req_1")
        finish_span(span, RuntimeError("failed"))
        assert not span.is_recording()
