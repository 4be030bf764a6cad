"""
streamgate - Catalog & History Tests

Verifies:
- Model normalization, de-duplication and static fallback
- Structured and scraped conversation history
- Conversation detail role mapping
"""

import httpx
import pytest

from streamgate.core.models import Model, Role
from streamgate.providers.catalog import dedupe_models, first_context_length, normalize_model
from streamgate.providers.cerebras import CerebrasProvider, GRAPHQL_URL
from streamgate.providers.history import ScrapedHistory, StructuredHistory, parse_timestamp
from streamgate.providers.mistral import HISTORY_PATTERN


def mistral_anchor(conversation_id: str, title: str) -> str:
    return (
        f'<a href="/chat/{conversation_id}" class="flex">'
        f'<div class="truncate leading-5.5 text-sm">{title}</div></a>'
    )


# ============================================================
# Catalog Helpers
# ============================================================

class TestCatalogHelpers:
    """Test model normalization."""

    def test_normalize_prefers_display_name(self):
        model = normalize_model({"id": "m1", "display_name": "Model One", "context_length": 8192})
        assert model == Model(id="m1", name="Model One", context_length=8192)

    def test_normalize_without_id(self):
        assert normalize_model({"display_name": "nameless"}, id_keys=("id",)) is None
        assert normalize_model("not a mapping") is None

    def test_invalid_context_length_dropped(self):
        assert normalize_model({"id": "m", "context_length": True}).context_length is None
        assert normalize_model({"id": "m", "context_length": -5}).context_length is None

    def test_dedupe_keeps_first(self):
        models = dedupe_models([
            Model(id="a", name="first"),
            None,
            Model(id="b", name="b"),
            Model(id="a", name="second"),
        ])
        assert [(m.id, m.name) for m in models] == [("a", "first"), ("b", "b")]

    def test_first_context_length(self):
        providers = [{"provider": "x"}, {"context_length": 0}, {"context_length": 32768}, {"context_length": 8}]
        assert first_context_length(providers) == 32768
        assert first_context_length(None) is None


# ============================================================
# Catalog Fetch
# ============================================================

class TestModelCatalog:
    """Test live catalogs and the static fallback."""

    @pytest.mark.asyncio
    async def test_cerebras_graphql_catalog(self, backend):
        backend.on_json("POST", httpx.URL(GRAPHQL_URL).path, {"data": {"ListModels": [
            {"id": "llama-3.3-70b", "name": "Llama 3.3 70B", "description": "Fast"},
            {"id": "llama-3.3-70b", "name": "duplicate"},
            {"id": "qwen-3-32b", "name": "Qwen 3 32B"},
        ]}})

        models = await backend.provider("cerebras").list_models("key")

        assert [m.id for m in models] == ["llama-3.3-70b", "qwen-3-32b"]
        assert all(m.context_length == 128000 for m in models)
        assert models[0].description == "Fast"
        request = backend.requests[0]
        assert str(request.url) == GRAPHQL_URL
        assert request.headers["Authorization"] == "Bearer key"

    @pytest.mark.asyncio
    async def test_fetch_failure_uses_fallback(self, backend, metrics_registry):
        backend.on("POST", httpx.URL(GRAPHQL_URL).path, lambda r: httpx.Response(500, text="down"))

        models = await backend.provider("cerebras").list_models("key")

        assert [m.id for m in models] == [m.id for m in CerebrasProvider.FALLBACK_MODELS]
        assert metrics_registry.get_sample_value(
            "streamgate_catalog_fallbacks_total", {"provider": "cerebras"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_empty_catalog_uses_fallback(self, backend):
        backend.on_json("GET", "/v1/models", {"models": []})

        models = await backend.provider("cohere").list_models("co-key")

        assert len(models) == 4
        assert any(m.is_thinking for m in models)

    @pytest.mark.asyncio
    async def test_fallback_is_a_copy(self, backend):
        backend.on_json("POST", httpx.URL(GRAPHQL_URL).path, {"data": {}})
        provider = backend.provider("cerebras")

        models = await provider.list_models("key")
        models[0].name = "mutated"

        assert CerebrasProvider.FALLBACK_MODELS[0].name != "mutated"

    @pytest.mark.asyncio
    async def test_cohere_catalog(self, backend):
        backend.on_json("GET", "/v1/models", {"models": [
            {"name": "command-a-03-2025", "context_length": 256000, "features": ["tools"]},
            {"name": "command-a-reasoning-08-2025", "features": ["reasoning"]},
        ]})

        models = await backend.provider("cohere").list_models("co-key")

        assert [(m.id, m.is_thinking) for m in models] == [
            ("command-a-03-2025", False),
            ("command-a-reasoning-08-2025", True),
        ]
        request = backend.requests[0]
        assert request.url.params["page_size"] == "500"
        assert request.url.params["endpoint"] == "chat"
        assert request.headers["x-fern-runtime"] == "browser"

    @pytest.mark.asyncio
    async def test_huggingchat_catalog(self, backend):
        backend.on_json("GET", "/chat/api/v2/models", {"json": [
            {"id": "Qwen/Qwen3", "displayName": "Qwen3", "providers": [{"context_length": 32768}]},
            {"id": "omni"},
        ]})

        models = await backend.provider("huggingchat").list_models("hf-chat=cookie")

        assert models[0] == Model(id="Qwen/Qwen3", name="Qwen3", context_length=32768)
        assert models[1].name == "omni"

    @pytest.mark.asyncio
    async def test_static_only_catalog(self, backend):
        models = await backend.provider("lmarena").list_models("cookie")

        assert [m.id for m in models] == ["gpt-4o"]
        assert backend.requests == []


# ============================================================
# History
# ============================================================

class TestTimestamps:
    """Test timestamp normalization."""

    def test_epoch_seconds_and_millis(self):
        assert parse_timestamp(1700000000) == 1700000000.0
        assert parse_timestamp(1700000000000) == 1700000000.0
        assert parse_timestamp("1700000000") == 1700000000.0

    def test_iso_strings(self):
        assert parse_timestamp("2023-11-14T22:13:20Z") == 1700000000.0

    def test_unparseable(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None
        assert parse_timestamp(True) is None


class TestStructuredHistory:
    """Test JSON conversation lists."""

    def test_dedupes_and_defaults_title(self):
        history = StructuredHistory()
        conversations = history.parse([
            {"id": "c1", "title": " First ", "updatedAt": 1700000000000},
            {"id": "c1", "title": "Duplicate"},
            {"_id": "c2"},
            {"title": "no id"},
            "garbage",
        ])
        assert [(c.id, c.title) for c in conversations] == [("c1", "First"), ("c2", "Untitled")]
        assert conversations[0].timestamp == 1700000000.0

    def test_limit(self):
        items = [{"id": str(n)} for n in range(10)]
        assert len(StructuredHistory().parse(items, limit=3)) == 3

    def test_non_list(self):
        assert StructuredHistory().parse({"id": "x"}) == []


class TestScrapedHistory:
    """Test HTML anchor extraction."""

    ID_A = "0b6c2f4e-1d2a-4a8e-9f00-123456789abc"
    ID_B = "1c7d3a5f-2e3b-4b9f-8a11-abcdef012345"

    def test_extracts_unescapes_and_dedupes(self):
        document = "".join([
            mistral_anchor(self.ID_A, "Tom &amp; Jerry"),
            mistral_anchor(self.ID_B, "Recipes"),
            mistral_anchor(self.ID_A, "Duplicate"),
        ])

        conversations = ScrapedHistory(HISTORY_PATTERN).parse(document)

        assert [(c.id, c.title) for c in conversations] == [
            (self.ID_A, "Tom & Jerry"),
            (self.ID_B, "Recipes"),
        ]
        assert conversations[0].timestamp is not None

    def test_escaped_json_markup(self):
        """Anchors embedded in a JS string have escaped quotes."""
        document = mistral_anchor(self.ID_A, "Escaped").replace('"', '\\"')
        conversations = ScrapedHistory(HISTORY_PATTERN).parse(document)
        assert [c.id for c in conversations] == [self.ID_A]

    def test_no_matches_returns_empty(self):
        assert ScrapedHistory(HISTORY_PATTERN).parse("<html><body>redesigned</body></html>") == []

    def test_limit(self):
        document = mistral_anchor(self.ID_A, "a") + mistral_anchor(self.ID_B, "b")
        assert len(ScrapedHistory(HISTORY_PATTERN).parse(document, limit=1)) == 1


class TestProviderHistory:
    """Test history fetches through providers."""

    @pytest.mark.asyncio
    async def test_mistral_scrapes_chat_page(self, backend):
        page = "<html>" + mistral_anchor(TestScrapedHistory.ID_A, "Hello") + "</html>"
        backend.on("GET", "/chat", lambda r: httpx.Response(200, text=page))

        conversations = await backend.provider("mistral").list_conversations("session=abc")

        assert [c.title for c in conversations] == ["Hello"]
        assert backend.requests[0].headers["Cookie"] == "session=abc"

    @pytest.mark.asyncio
    async def test_huggingchat_list(self, backend):
        backend.on_json("GET", "/chat/api/v2/conversations", {"json": {"conversations": [
            {"_id": "c1", "title": "One", "updatedAt": "2023-11-14T22:13:20Z"},
        ]}})

        conversations = await backend.provider("huggingchat").list_conversations("hf-chat=cookie")

        assert [(c.id, c.title, c.timestamp) for c in conversations] == [("c1", "One", 1700000000.0)]
        assert backend.requests[0].url.params["p"] == "0"

    @pytest.mark.asyncio
    async def test_huggingchat_detail_maps_roles(self, backend):
        backend.on_json("GET", "/chat/api/v2/conversations/c1", {"json": {
            "id": "c1",
            "title": "One",
            "updatedAt": 1700000000000,
            "messages": [
                {"id": "m0", "from": "system", "content": "You are helpful"},
                {"id": "m1", "from": "user", "content": "Hi"},
                {"id": "m2", "from": "assistant", "content": "Hello"},
            ],
        }})

        detail = await backend.provider("huggingchat").get_conversation("hf-chat=cookie", "c1")

        assert detail.title == "One"
        assert detail.updated_at == 1700000000.0
        assert [(m.role, m.content) for m in detail.messages] == [
            (Role.SYSTEM, "You are helpful"),
            (Role.USER, "Hi"),
            (Role.ASSISTANT, "Hello"),
        ]
        assert detail.to_dict()["conversation_id"] == "c1"

    @pytest.mark.asyncio
    async def test_lmarena_list(self, backend):
        backend.on_json("GET", "/api/history/list", {"history": [
            {"id": "a1", "title": "Arena battle", "created_at": 1700000000},
        ]})

        conversations = await backend.provider("lmarena").list_conversations("arena=cookie", limit=5)

        assert [c.id for c in conversations] == ["a1"]
        assert backend.requests[0].url.params["limit"] == "5"
