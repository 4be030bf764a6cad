"""
streamgate - Provider System Tests

Verifies each backend's outbound contract against a mocked upstream:
- Cerebras / Groq chat completions
- Cohere token exchange and thinking flag
- Mistral two-phase start/append protocol
- HuggingChat create/detail/send flow with NDJSON replies
- Registry dispatch, per-host queues and unsupported operations
"""

import json

import httpx
import pytest

from conftest import chat_chunk, sse_lines

from streamgate.core.config import GatewaySettings
from streamgate.core.errors import (
    StreamPayloadError,
    UnknownProviderError,
    UnsupportedOperationError,
    UpstreamError,
)
from streamgate.core.models import Message, SendRequest, StreamEventType
from streamgate.providers import (
    CerebrasProvider,
    GroqProvider,
    MistralProvider,
    ProviderName,
    ProviderRegistry,
    get_provider,
)
from streamgate.providers.base import Capability
from streamgate.providers.cohere import EXCHANGE_URL
from streamgate.providers.groq import session_token
from streamgate.providers.huggingchat import parent_message_id


def make_request(**kwargs):
    kwargs.setdefault("credential", "secret")
    kwargs.setdefault("messages", (Message.system("Be brief"), Message.user("Hi")))
    return SendRequest(**kwargs)


def summary(events):
    return [(e.type, e.text) for e in events]


# ============================================================
# Chat Completions Backends
# ============================================================

class TestCerebrasProvider:
    """Test the Cerebras outbound request."""

    @pytest.mark.asyncio
    async def test_request_shape(self, backend):
        backend.on_stream("POST", "/v1/chat/completions", sse_lines(chat_chunk("Hi")))
        provider = backend.provider("cerebras")

        await provider.send_message(make_request(model="llama3.1-8b", temperature=0.2)).collect()

        request = backend.requests[0]
        assert str(request.url) == "https://api.cerebras.ai/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["User-Agent"] == "Elara/1.0.0"
        assert json.loads(request.content) == {
            "model": "llama3.1-8b",
            "messages": [
                {"role": "system", "content": "Be brief"},
                {"role": "user", "content": "Hi"},
            ],
            "stream": True,
            "temperature": 0.2,
        }

    @pytest.mark.asyncio
    async def test_default_model(self, backend):
        backend.on_stream("POST", "/v1/chat/completions", sse_lines(chat_chunk("Hi")))

        await backend.provider("cerebras").send_message(make_request()).collect()

        assert backend.json_bodies()[0]["model"] == CerebrasProvider.DEFAULT_MODEL


class TestGroqProvider:
    """Test the Groq console session flow."""

    COOKIE = (
        "stytch_session_jwt=eyJgroq.jwt.sig; "
        "user-preferences=%7B%22current-org%22%3A%22org_42%22%7D"
    )

    @pytest.mark.asyncio
    async def test_chat_uses_cookie_session(self, backend):
        backend.on_stream("POST", "/openai/v1/chat/completions", sse_lines(chat_chunk("yo")))

        events = await backend.provider("groq").send_message(make_request(credential=self.COOKIE)).collect()

        assert summary(events)[0] == (StreamEventType.CONTENT, "yo")
        request = backend.requests[0]
        assert request.headers["Cookie"] == self.COOKIE
        assert request.headers["Origin"] == "https://console.groq.com"
        assert request.headers["Referer"] == "https://console.groq.com/"
        assert "Chrome" in request.headers["User-Agent"]

    @pytest.mark.asyncio
    async def test_models_use_session_token_and_org(self, backend):
        backend.on_json("GET", "/internal/v1/models", {"data": [
            {"id": "llama-3.3-70b-versatile", "context_window": 131072, "metadata": {"display_name": "Llama 3.3"}},
            {"id": "qwen/qwen3-32b", "features": {"reasoning": True}},
            {"id": "retired-model", "active": False},
        ]})

        models = await backend.provider("groq").list_models(self.COOKIE)

        assert [m.id for m in models] == ["llama-3.3-70b-versatile", "qwen/qwen3-32b"]
        assert models[0].name == "Llama 3.3"
        assert models[0].context_length == 131072
        assert models[1].is_thinking
        request = backend.requests[0]
        assert request.headers["Authorization"] == "Bearer eyJgroq.jwt.sig"
        assert request.headers["groq-organization"] == "org_42"

    def test_session_token_extraction(self):
        assert session_token(self.COOKIE) == "eyJgroq.jwt.sig"
        assert session_token("bare-token") == "bare-token"
        assert session_token("other=value") is None


class TestCohereProvider:
    """Test Cohere exchange and payload."""

    @pytest.mark.asyncio
    async def test_session_token_exchanged_before_chat(self, backend):
        backend.on_json("POST", httpx.URL(EXCHANGE_URL).path, {"rawKey": "co-issued"})
        content_delta = {"type": "content-delta", "delta": {"message": {"content": {"text": "Hey"}}}}
        backend.on_stream("POST", "/v2/chat", sse_lines(content_delta, done=False))

        events = await backend.provider("cohere").send_message(
            make_request(credential="eyJsession.token.sig", thinking=True)
        ).collect()

        assert summary(events) == [(StreamEventType.CONTENT, "Hey"), (StreamEventType.DONE, "")]
        exchange, chat = backend.requests
        assert str(exchange.url) == EXCHANGE_URL
        assert chat.headers["Authorization"] == "Bearer co-issued"
        assert json.loads(chat.content)["thinking"] == {"type": "enabled"}

    @pytest.mark.asyncio
    async def test_raw_key_used_directly(self, backend):
        backend.on_stream("POST", "/v2/chat", sse_lines({"type": "message-start"}, done=False))

        await backend.provider("cohere").send_message(make_request(credential="co-raw")).collect()

        assert backend.paths() == ["/v2/chat"]
        assert backend.requests[0].headers["Authorization"] == "Bearer co-raw"
        assert "thinking" not in backend.json_bodies()[0]


# ============================================================
# Mistral
# ============================================================

class TestMistralProvider:
    """Test the two-phase start/append protocol."""

    APPEND_LINES = [
        '0:{"json":{"patches":[{"op":"replace","path":"/status","value":"streaming"}]}}\n',
        '1:{"json":{"patches":[{"op":"append","path":"/contentChunks/0/text","value":"Bon"}]}}\n',
        '2:{"json":{"patches":[{"op":"append","path":"/contentChunks/0/text","value":"jour"}]}}\n',
    ]

    @pytest.mark.asyncio
    async def test_new_chat_starts_then_appends(self, backend):
        backend.on_stream("POST", "/api/chat", ['0:{"json":{"chatId":"ignored"}}\n'])
        backend.on_stream("POST", "/api/chat", self.APPEND_LINES)

        events = await backend.provider("mistral").send_message(make_request(credential="session=abc")).collect()

        assert [e.type for e in events] == [
            StreamEventType.SESSION_ID,
            StreamEventType.CONTENT,
            StreamEventType.CONTENT,
            StreamEventType.DONE,
        ]
        chat_id = events[0].text
        assert len(chat_id) == 36
        assert "".join(e.text for e in events if e.type == StreamEventType.CONTENT) == "Bonjour"

        start, append = backend.json_bodies()
        assert start["mode"] == "start"
        assert start["chatId"] == append["chatId"] == chat_id
        assert "messageInput" not in start
        assert append["mode"] == "append"
        assert append["messageInput"] == [{"type": "text", "text": "Hi"}]

        for request in backend.requests:
            assert request.headers["Cookie"] == "session=abc"
            assert request.headers["Referer"] == f"https://chat.mistral.ai/chat/{chat_id}"

    @pytest.mark.asyncio
    async def test_existing_chat_only_appends(self, backend):
        backend.on_stream("POST", "/api/chat", self.APPEND_LINES)

        events = await backend.provider("mistral").send_message(
            make_request(credential="session=abc", conversation_id="chat-1")
        ).collect()

        assert len(backend.requests) == 1
        assert backend.json_bodies()[0]["chatId"] == "chat-1"
        assert events[0].type == StreamEventType.CONTENT

    @pytest.mark.asyncio
    async def test_failed_start_skips_append(self, backend):
        backend.on("POST", "/api/chat", lambda r: httpx.Response(403, text="expired session"))

        events = await backend.provider("mistral").send_message(make_request()).collect()

        assert [e.type for e in events] == [StreamEventType.SESSION_ID, StreamEventType.ERROR]
        assert isinstance(events[-1].error, UpstreamError)
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_no_conversation_detail(self, backend):
        provider = backend.provider("mistral")
        with pytest.raises(UnsupportedOperationError):
            await provider.get_conversation("session=abc", "chat-1")


# ============================================================
# HuggingChat
# ============================================================

class TestHuggingChatProvider:
    """Test the create/detail/send flow."""

    NDJSON = [
        '{"type":"status","status":"started"}\n',
        '{"type":"stream","token":"<think>plan"}\n',
        '{"type":"stream","token":"</think>Hello"}\u0000\u0000\n',
        '{"type":"title","title":"Greeting"}\n',
        '{"type":"finalAnswer","text":"Hello"}\n',
    ]

    def _mount(self, backend, conversation_id="conv-1"):
        backend.on_json("POST", "/chat/conversation", {"conversationId": conversation_id})
        backend.on_json("GET", f"/chat/api/v2/conversations/{conversation_id}", {
            "json": {"rootMessageId": "root", "messages": [{"id": "m1"}, {"id": "m2"}]}
        })
        backend.on_stream("POST", f"/chat/conversation/{conversation_id}", self.NDJSON)

    @pytest.mark.asyncio
    async def test_full_flow(self, backend):
        self._mount(backend)

        events = await backend.provider("huggingchat").send_message(
            make_request(credential="hf-chat=cookie", model="omni")
        ).collect()

        assert summary(events) == [
            (StreamEventType.SESSION_ID, "conv-1"),
            (StreamEventType.THINKING, "plan"),
            (StreamEventType.CONTENT, "Hello"),
            (StreamEventType.TITLE, "Greeting"),
            (StreamEventType.DONE, ""),
        ]
        assert backend.paths() == [
            "/chat/conversation",
            "/chat/api/v2/conversations/conv-1",
            "/chat/conversation/conv-1",
        ]

        create, _, send = backend.requests
        assert json.loads(create.content)["model"] == "omni"
        assert send.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="data"' in send.content
        assert b'"inputs": "Hi"' in send.content
        assert b'"id": "m2"' in send.content
        assert send.headers["Referer"] == "https://huggingface.co/chat/conversation/conv-1"

    @pytest.mark.asyncio
    async def test_existing_conversation_skips_create(self, backend):
        self._mount(backend, "conv-9")

        await backend.provider("huggingchat").send_message(
            make_request(credential="hf-chat=cookie", conversation_id="conv-9")
        ).collect()

        assert backend.paths()[0] == "/chat/api/v2/conversations/conv-9"

    @pytest.mark.asyncio
    async def test_create_without_id_fails(self, backend):
        backend.on_json("POST", "/chat/conversation", {"unexpected": True})

        events = await backend.provider("huggingchat").send_message(make_request()).collect()

        assert [e.type for e in events] == [StreamEventType.ERROR]
        assert isinstance(events[0].error, StreamPayloadError)

    def test_parent_message_id_fallbacks(self):
        assert parent_message_id({"messages": [{"id": "a"}, {"id": "b"}]}) == "b"
        assert parent_message_id({"messages": [], "rootMessageId": "root"}) == "root"
        assert len(parent_message_id({})) == 36


# ============================================================
# Registry
# ============================================================

class TestProviderRegistry:
    """Test closed-registry dispatch."""

    def _registry(self, backend, **settings):
        return ProviderRegistry(GatewaySettings(**settings), transport=backend.transport)

    def test_all_providers_registered(self, backend):
        registry = self._registry(backend)
        assert registry.names() == [name.value for name in ProviderName]

    def test_lookup_is_case_insensitive(self, backend):
        registry = self._registry(backend)
        assert isinstance(registry.get("Mistral"), MistralProvider)
        assert "GROQ" in registry
        assert "openai" not in registry

    def test_unknown_provider(self, backend):
        registry = self._registry(backend)
        with pytest.raises(UnknownProviderError) as exc_info:
            registry.get("openai")
        assert exc_info.value.error.message == "Unsupported provider: openai"
        assert exc_info.value.status_code == 404

    def test_get_provider_factory(self):
        assert isinstance(get_provider("groq"), GroqProvider)
        with pytest.raises(UnknownProviderError):
            get_provider("nope")

    def test_queues_are_shared_per_host(self, backend):
        registry = self._registry(
            backend,
            queue_min_interval=0.5,
            base_urls={"cerebras": "https://shared.example", "cohere": "https://shared.example"},
        )
        cerebras = registry.get("cerebras")
        assert cerebras.queue is registry.get("cohere").queue
        assert cerebras.queue is not registry.get("groq").queue
        assert cerebras.queue.min_interval == 0.5
        assert cerebras.base_url == "https://shared.example"

    def test_provider_for_model(self, backend):
        registry = self._registry(backend)
        assert registry.provider_for_model("mistral-large-latest").name == "mistral"
        assert registry.provider_for_model("llama-3.3-70b-versatile").name == "groq"
        assert registry.provider_for_model("command-r7b") is None

    def test_exact_catalog_id_beats_allow_list(self, backend):
        registry = self._registry(backend)
        assert registry.provider_for_model("llama-3.3-70b").name == "cerebras"
        assert registry.provider_for_model("meta-llama/Llama-3.3-70B-Instruct").name == "huggingchat"
        assert registry.provider_for_model("llama-4-scout").name == "groq"

    def test_catalog_match_requires_send_capability(self, backend):
        registry = self._registry(backend)
        assert registry.provider_for_model("gpt-4o") is None

    def test_subset_registry(self, backend):
        registry = ProviderRegistry(GatewaySettings(), names=["cohere"], transport=backend.transport)
        assert registry.names() == ["cohere"]
        with pytest.raises(UnknownProviderError):
            registry.get("groq")


# ============================================================
# Capabilities
# ============================================================

class TestCapabilities:
    """Test capability declarations and refusals."""

    def test_lmarena_cannot_send(self, backend):
        provider = backend.provider("lmarena")
        assert not provider.supports(Capability.SEND_MESSAGE)
        with pytest.raises(UnsupportedOperationError) as exc_info:
            provider.send_message(make_request())
        assert exc_info.value.status_code == 501
        assert exc_info.value.operation == "send_message"

    def test_lmarena_serves_no_models(self, backend):
        assert not backend.provider("lmarena").is_model_supported("gpt-4o")

    @pytest.mark.asyncio
    async def test_history_refused_without_capability(self, backend):
        with pytest.raises(UnsupportedOperationError):
            await backend.provider("cerebras").list_conversations("key")
        assert backend.requests == []

    def test_model_patterns(self, backend):
        mistral = backend.provider("mistral")
        assert mistral.is_model_supported("Mistral-Large")
        assert not mistral.is_model_supported("llama-3")
        assert backend.provider("cerebras").is_model_supported("anything")
