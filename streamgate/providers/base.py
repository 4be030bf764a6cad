"""
streamgate - Provider Base

Abstract base class for chat backends.

Each provider (Cerebras, Cohere, Groq, Mistral, HuggingChat, LMArena)
declares the capabilities it implements and supplies:
1. Its payload shape and authentication headers
2. The line classifier for its wire format
3. Optionally a live model catalog and conversation history

The base class owns everything backend-independent: capability checks,
queueing, the terminal-event guarantee, the catalog fallback and the HTTP
client lifecycle.
"""

from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Optional, Tuple

import httpx

from .catalog import copy_models, dedupe_models
from ..core.config import BROWSER_USER_AGENT, DEFAULT_HTTP_TIMEOUT, DEFAULT_USER_AGENT
from ..core.errors import UnsupportedOperationError
from ..core.http_client import ProviderHttpClient, RequestContext
from ..core.models import (
    ConversationDetail,
    ConversationSummary,
    Model,
    SendRequest,
    StreamCallbacks,
    StreamEvent,
)
from ..observability.logging import TimedOperation, get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import trace_provider_call
from ..routing.queue import RequestQueue
from ..streaming.session import EventStream, StreamSession


logger = get_logger("streamgate.providers")


class Capability(str, Enum):
    """Operations a provider may implement."""
    SEND_MESSAGE = "send_message"
    LIST_MODELS = "list_models"
    LIST_CONVERSATIONS = "list_conversations"
    GET_CONVERSATION = "get_conversation"


@dataclass
class ProviderConfig:
    """Configuration for a provider instance."""
    base_url: Optional[str] = None
    timeout: float = DEFAULT_HTTP_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    stream_timeout: Optional[float] = None
    transport: Optional[httpx.AsyncBaseTransport] = None


class BaseProvider(ABC):
    """
    Abstract base class for chat providers.

    Subclasses set the class attributes below and override the `_` hooks for
    the capabilities they declare.
    """

    name: str = ""
    BASE_URL: str = ""
    DEFAULT_MODEL: str = ""
    CAPABILITIES: FrozenSet[Capability] = frozenset({Capability.LIST_MODELS})
    MODEL_PATTERNS: Tuple[str, ...] = ()
    FALLBACK_MODELS: Tuple[Model, ...] = ()

    # Backends driven through a browser session send a browser User-Agent.
    BROWSER_SESSION = False

    def __init__(self, config: Optional[ProviderConfig] = None, queue: Optional[RequestQueue] = None):
        self.config = config or ProviderConfig()
        self.queue = queue or RequestQueue(name=self.host)
        self.http = ProviderHttpClient(
            self.name,
            base_url=self.base_url,
            timeout=self.config.timeout,
            headers={"User-Agent": self.user_agent},
            transport=self.config.transport,
        )

    @property
    def base_url(self) -> str:
        return (self.config.base_url or self.BASE_URL).rstrip("/")

    @property
    def host(self) -> str:
        return httpx.URL(self.base_url).host or self.name

    @property
    def user_agent(self) -> str:
        if self.BROWSER_SESSION:
            return BROWSER_USER_AGENT
        return self.config.user_agent

    # ============================================================
    # Capabilities
    # ============================================================

    def supports(self, capability: Capability) -> bool:
        return capability in self.CAPABILITIES

    def _require(self, capability: Capability, request_id: str = ""):
        if not self.supports(capability):
            raise UnsupportedOperationError(self.name, capability.value, request_id=request_id)

    def is_model_supported(self, model_id: str) -> bool:
        """True if this provider should serve `model_id`."""
        if not self.MODEL_PATTERNS:
            return True
        lowered = (model_id or "").lower()
        return any(pattern in lowered for pattern in self.MODEL_PATTERNS)

    def resolve_model(self, model: Optional[str]) -> str:
        return model or self.DEFAULT_MODEL

    # ============================================================
    # Messaging
    # ============================================================

    def send_message(self, request: SendRequest) -> EventStream:
        """
        Start a streaming call.

        Returns immediately; nothing is sent until the stream is iterated.

        Raises:
            UnsupportedOperationError: Provider cannot send messages
        """
        self._require(Capability.SEND_MESSAGE, request.request_id)
        logger.info(
            "Opening stream",
            provider=self.name,
            model=self.resolve_model(request.model),
            request_id=request.request_id,
            messages=len(request.messages),
        )
        return EventStream(
            lambda session: self._stream_events(request, session),
            provider=self.name,
            queue=self.queue,
            request_id=request.request_id,
            model=self.resolve_model(request.model),
            timeout=request.timeout or self.config.stream_timeout,
        )

    async def handle_message(self, request: SendRequest, callbacks: StreamCallbacks):
        """Callback-style send: exactly one of on_done/on_error fires."""
        await self.send_message(request).dispatch(callbacks)

    async def _stream_events(self, request: SendRequest, session: StreamSession) -> AsyncIterator[StreamEvent]:
        """Yield canonical events for one request. Override for SEND_MESSAGE."""
        raise UnsupportedOperationError(self.name, Capability.SEND_MESSAGE.value, request_id=request.request_id)
        yield  # pragma: no cover

    async def _open_stream(
        self,
        session: StreamSession,
        request: SendRequest,
        method: str,
        url: str,
        step_name: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        phase: Optional[str] = None,
    ) -> httpx.Response:
        """Queue one streaming HTTP call and return the open response."""
        ctx = self._context(request, step_name)
        http_request = self.http.build_request(method, url, json=json, files=files, headers=headers)
        return await session.open(
            lambda: self.http.send(http_request, ctx, stream=True, payload=json),
            phase=phase,
        )

    def _chat_completions_payload(self, request: SendRequest) -> Dict[str, Any]:
        """Flat OpenAI-style chat completions body with streaming enabled."""
        payload: Dict[str, Any] = {
            "model": self.resolve_model(request.model),
            "messages": request.wire_messages(),
            "stream": True,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        return payload

    def _context(self, request: SendRequest, step_name: str) -> RequestContext:
        return RequestContext(
            request_id=request.request_id,
            step_name=step_name,
            provider=self.name,
            model=self.resolve_model(request.model),
        )

    # ============================================================
    # Catalog
    # ============================================================

    async def list_models(self, credential: str) -> List[Model]:
        """
        List models, falling back to the static catalog.

        Never raises for fetch failures.
        """
        with trace_provider_call(self.name, "", "list_models") as span:
            try:
                async with TimedOperation("list_models", logger, extra={"provider": self.name}):
                    fetched = await self._fetch_models(credential)
            except Exception as e:
                logger.warning(
                    f"Model catalog fetch failed: {type(e).__name__}: {e}",
                    provider=self.name,
                )
                fetched = []

            if fetched is None:
                models = self.fallback_models()
            else:
                models = dedupe_models(fetched)
                if not models:
                    get_metrics().record_catalog_fallback(self.name)
                    logger.info("Using static model catalog", provider=self.name)
                    models = self.fallback_models()

            span.set_attribute("models.count", len(models))
            return models

    def fallback_models(self) -> List[Model]:
        return copy_models(self.FALLBACK_MODELS)

    async def _fetch_models(self, credential: str) -> Optional[List[Model]]:
        """Live catalog fetch. None means the provider only has a static catalog."""
        return None

    # ============================================================
    # History
    # ============================================================

    async def list_conversations(self, credential: str, limit: int = 30) -> List[ConversationSummary]:
        """
        Raises:
            UnsupportedOperationError: Provider has no history capability
        """
        self._require(Capability.LIST_CONVERSATIONS)
        with trace_provider_call(self.name, "", "list_conversations"):
            async with TimedOperation("list_conversations", logger, extra={"provider": self.name}):
                return await self._list_conversations(credential, limit)

    async def get_conversation(self, credential: str, conversation_id: str) -> ConversationDetail:
        """
        Raises:
            UnsupportedOperationError: Provider has no history capability
        """
        self._require(Capability.GET_CONVERSATION)
        with trace_provider_call(self.name, "", "get_conversation"):
            return await self._get_conversation(credential, conversation_id)

    async def _list_conversations(self, credential: str, limit: int) -> List[ConversationSummary]:
        raise UnsupportedOperationError(self.name, Capability.LIST_CONVERSATIONS.value)

    async def _get_conversation(self, credential: str, conversation_id: str) -> ConversationDetail:
        raise UnsupportedOperationError(self.name, Capability.GET_CONVERSATION.value)

    async def close(self):
        """Release the HTTP client."""
        await self.http.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} base_url={self.base_url!r}>"

