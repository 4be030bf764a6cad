"""
streamgate - Stream Sessions

State machine and event channel for one streaming call.

States:
- IDLE: Created, nothing sent yet
- REQUESTING: Dispatch queued or in flight
- STREAMING: 2xx response received, body being consumed
- DONE: Transport ended cleanly (or the SSE sentinel arrived)
- ERROR: Non-2xx status, missing body, transport failure, deadline or an
  error frame inside the stream

Transitions:
- IDLE -> REQUESTING: `StreamSession.open`
- REQUESTING -> STREAMING: response with a readable body
- REQUESTING -> ERROR: non-2xx (status and body kept in UpstreamError)
- STREAMING -> REQUESTING: second phase of a multi-request protocol
- STREAMING -> DONE | ERROR

`EventStream` is the consumer side: an async iterator of canonical events
that always ends with exactly one terminal event (DONE or ERROR) unless it
was cancelled.
"""

import asyncio
import contextlib
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

import httpx

from .classifiers import LineClassifier
from .framer import iter_lines
from ..core.errors import EmptyResponseError, StreamTimeoutError, handle_transport_error
from ..core.models import StreamCallbacks, StreamEvent, StreamEventType
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import finish_span, start_stream_span
from ..routing.queue import RequestQueue


logger = get_logger("streamgate.stream")

THINKING_PREFIX = "[Thinking] "


class StreamState(str, Enum):
    """Stream session states."""
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


class StreamSession:
    """
    One streaming exchange with a backend.

    Dispatches go through the provider's queue; body consumption happens
    outside it, so the queue is free again as soon as response headers
    arrive.
    """

    def __init__(self, provider: str, queue: RequestQueue, request_id: str = ""):
        self.provider = provider
        self.queue = queue
        self.request_id = request_id
        self.state = StreamState.IDLE
        self.phase: Optional[str] = None
        self._response: Optional[httpx.Response] = None

    async def call(self, dispatch: Callable[[], Awaitable[Any]]) -> Any:
        """Run a non-streaming helper call (session setup) through the queue."""
        return await self.queue.run(dispatch)

    async def open(
        self,
        dispatch: Callable[[], Awaitable[httpx.Response]],
        phase: Optional[str] = None,
    ) -> httpx.Response:
        """
        Queue the streaming dispatch and wait for response headers.

        Raises:
            UpstreamError: Non-2xx status
            TransportError: Connection failure
        """
        self.state = StreamState.REQUESTING
        self.phase = phase
        try:
            response = await self.queue.run(dispatch)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.state = StreamState.ERROR
            raise handle_transport_error(e, self.provider, self.request_id)

        self._response = response
        self.state = StreamState.STREAMING
        return response

    async def consume(
        self,
        response: httpx.Response,
        classifier: LineClassifier,
    ) -> AsyncIterator[StreamEvent]:
        """
        Frame and classify the body, yielding non-ignored events.

        Stops after the first terminal event (SSE sentinel or error frame).
        The response is always closed on exit.
        """
        received = False
        lines = iter_lines(self._chunks(response))
        try:
            async for line in lines:
                received = True
                for event in classifier.classify(line):
                    if event.type == StreamEventType.IGNORE:
                        continue
                    yield event
                    if event.is_terminal:
                        return
            if not received:
                raise EmptyResponseError(self.provider, request_id=self.request_id)
        finally:
            await lines.aclose()
            await response.aclose()

    async def drain(self, response: httpx.Response):
        """Read and discard a body (setup phases that carry no content)."""
        try:
            async for _ in self._chunks(response):
                pass
        finally:
            await response.aclose()

    async def _chunks(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise handle_transport_error(e, self.provider, self.request_id)

    async def close(self):
        if self._response is not None:
            await self._response.aclose()


EventSource = Callable[[StreamSession], AsyncIterator[StreamEvent]]


class EventStream:
    """
    Cancellable channel of canonical stream events.

    Iteration starts the producer lazily. The producer runs as its own task
    and feeds an asyncio.Queue, so `cancel()` can be called from any task,
    including from inside a callback.

    Usage:
        stream = provider.send_message(request)
        async for event in stream:
            if event.type == StreamEventType.CONTENT:
                print(event.text, end="")
    """

    _CLOSED = object()

    def __init__(
        self,
        source: EventSource,
        provider: str,
        queue: RequestQueue,
        request_id: str = "",
        model: str = "",
        timeout: Optional[float] = None,
    ):
        self.provider = provider
        self.model = model
        self.request_id = request_id
        self.timeout = timeout
        self.session = StreamSession(provider, queue, request_id)
        self._source = source
        self._channel: "asyncio.Queue[Any]" = asyncio.Queue()
        self._producer: Optional[asyncio.Task] = None
        self._finished = False
        self._cancelled = False

    @property
    def state(self) -> StreamState:
        return self.session.state

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> StreamEvent:
        if self._finished or self._cancelled:
            self._finished = True
            raise StopAsyncIteration
        if self._producer is None:
            self._producer = asyncio.get_running_loop().create_task(self._produce())

        item = await self._channel.get()
        if item is self._CLOSED or self._cancelled:
            self._finished = True
            raise StopAsyncIteration
        if item.is_terminal:
            self._finished = True
        return item

    def cancel(self):
        """
        Stop the stream early and close the underlying response.

        No terminal event is delivered after a cancel.
        """
        if self._finished or self._cancelled:
            return
        self._cancelled = True
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()
        self._channel.put_nowait(self._CLOSED)

    async def aclose(self):
        """Cancel and wait until the producer has released the connection."""
        self.cancel()
        if self._producer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._producer

    async def collect(self) -> List[StreamEvent]:
        """Consume the whole stream and return every event, terminal included."""
        return [event async for event in self]

    async def text(self) -> str:
        """Consume the stream and return the concatenated content."""
        parts = []
        async for event in self:
            if event.type == StreamEventType.CONTENT:
                parts.append(event.text)
            elif event.type == StreamEventType.ERROR:
                raise event.error
        return "".join(parts)

    async def dispatch(self, callbacks: StreamCallbacks):
        """
        Drive the stream into callbacks.

        Exactly one of `on_done` / `on_error` fires unless the stream is
        cancelled. A callback that raises ends the stream and is reported
        through `on_error`.
        """
        async for event in self:
            if event.type == StreamEventType.DONE:
                callbacks.on_done()
                return
            if event.type == StreamEventType.ERROR:
                callbacks.on_error(event.error)
                return
            try:
                _deliver(event, callbacks)
            except Exception as e:
                logger.warning(
                    f"Stream callback failed: {type(e).__name__}: {e}",
                    provider=self.provider,
                    request_id=self.request_id,
                )
                await self.aclose()
                callbacks.on_error(e)
                return

    async def _produce(self):
        span = start_stream_span(self.provider, self.model, self.request_id)
        outcome = "done"
        error: Optional[BaseException] = None
        terminal: Optional[StreamEvent] = None

        try:
            if self.timeout is not None:
                terminal = await asyncio.wait_for(self._pump(), self.timeout)
            else:
                terminal = await self._pump()
        except asyncio.CancelledError:
            outcome = "cancelled"
            await self.session.close()
            raise
        except asyncio.TimeoutError:
            error = StreamTimeoutError(self.provider, self.timeout, request_id=self.request_id)
            terminal = StreamEvent.failure(error)
        except Exception as e:
            error = handle_transport_error(e, self.provider, self.request_id)
            terminal = StreamEvent.failure(error)
        finally:
            if terminal is not None:
                if terminal.type == StreamEventType.ERROR:
                    outcome = "error"
                    error = error or terminal.error
                    self.session.state = StreamState.ERROR
                    logger.warning(
                        f"Stream failed: {terminal.text}",
                        provider=self.provider,
                        request_id=self.request_id,
                    )
                else:
                    self.session.state = StreamState.DONE
                get_metrics().record_event(self.provider, terminal.type.value)
                self._channel.put_nowait(terminal)
            get_metrics().record_session(self.provider, outcome)
            finish_span(span, error)

    async def _pump(self) -> StreamEvent:
        source = self._source(self.session)
        try:
            async for event in source:
                if event.type == StreamEventType.IGNORE:
                    continue
                if event.is_terminal:
                    return event
                get_metrics().record_event(self.provider, event.type.value)
                self._channel.put_nowait(event)
        finally:
            await source.aclose()
        return StreamEvent.done()


def _deliver(event: StreamEvent, callbacks: StreamCallbacks):
    if event.type == StreamEventType.CONTENT:
        callbacks.on_content(event.text)
    elif event.type == StreamEventType.THINKING:
        if callbacks.on_thinking is not None:
            callbacks.on_thinking(event.text)
        else:
            callbacks.on_content(THINKING_PREFIX + event.text)
    elif callbacks.on_metadata is None:
        return
    elif event.type == StreamEventType.TITLE:
        callbacks.on_metadata({"conversation_title": event.text})
    elif event.type == StreamEventType.SESSION_ID:
        callbacks.on_metadata({"conversation_id": event.text})
    elif event.type == StreamEventType.META:
        callbacks.on_metadata(dict(event.data))
