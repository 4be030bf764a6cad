"""
streamgate - Pytest Configuration

Configures:
- A recording mock backend built on httpx.MockTransport
- Helpers for chunked streaming bodies
"""

import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Tuple, Union

import httpx
import pytest
from prometheus_client import CollectorRegistry

from streamgate.observability.metrics import setup_metrics
from streamgate.providers import get_provider
from streamgate.providers.base import BaseProvider, ProviderConfig
from streamgate.routing.queue import RequestQueue


# ============================================================
# Streaming Body Helpers
# ============================================================

async def achunks(chunks: Iterable[Union[bytes, str]]) -> AsyncIterator[bytes]:
    """Async byte stream yielding `chunks` one by one."""
    for chunk in chunks:
        yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


def sse_lines(*payloads: Any, done: bool = True) -> List[str]:
    """SSE frames for the given payloads, optionally ending with the sentinel."""
    lines = [f"data: {json.dumps(p)}\n\n" for p in payloads]
    if done:
        lines.append("data: [DONE]\n\n")
    return lines


def chat_chunk(content: str) -> Dict[str, Any]:
    """OpenAI-style streaming delta."""
    return {"choices": [{"index": 0, "delta": {"content": content}}]}


def stream_response(
    chunks: Iterable[Union[bytes, str]] = (),
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> httpx.Response:
    """Response whose body arrives as the given chunks."""
    return httpx.Response(status_code, content=achunks(list(chunks)), headers=headers)


# ============================================================
# Mock Backend
# ============================================================

ResponseFactory = Callable[[httpx.Request], httpx.Response]


class MockBackend:
    """
    Routes requests by (method, path) to response factories and records
    every request it receives.

    Each registered factory is used once, in registration order; the last
    one for a route keeps answering further calls.

    Usage:
        backend = MockBackend()
        backend.on("POST", "/v1/chat/completions", lambda r: stream_response(...))
        provider = backend.provider("cerebras")
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[ResponseFactory]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, factory: ResponseFactory) -> "MockBackend":
        self.routes.setdefault((method.upper(), path), []).append(factory)
        return self

    def on_json(self, method: str, path: str, data: Any, status_code: int = 200) -> "MockBackend":
        return self.on(method, path, lambda request: httpx.Response(status_code, json=data))

    def on_stream(self, method: str, path: str, chunks: Iterable[Union[bytes, str]], status_code: int = 200) -> "MockBackend":
        chunk_list = list(chunks)
        return self.on(method, path, lambda request: stream_response(chunk_list, status_code))

    async def handler(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        factories = self.routes.get((request.method, request.url.path))
        if not factories:
            return httpx.Response(404, json={"error": f"no route for {request.method} {request.url.path}"})
        factory = factories.pop(0) if len(factories) > 1 else factories[0]
        return factory(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def provider(self, name: str, min_interval: float = 0.0, **config: Any) -> BaseProvider:
        return get_provider(
            name,
            ProviderConfig(transport=self.transport, **config),
            RequestQueue(name=name, min_interval=min_interval),
        )

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def json_bodies(self) -> List[Any]:
        bodies = []
        for request in self.requests:
            try:
                bodies.append(json.loads(request.content))
            except ValueError:
                bodies.append(None)
        return bodies


@pytest.fixture
def backend() -> MockBackend:
    return MockBackend()


# ============================================================
# Metrics
# ============================================================

@pytest.fixture
def metrics_registry() -> CollectorRegistry:
    """Fresh Prometheus registry installed as the active collector."""
    registry = CollectorRegistry()
    setup_metrics(registry)
    return registry


# ============================================================
# Logging Configuration
# ============================================================

@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield
