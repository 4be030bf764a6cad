"""
streamgate - Cohere Provider

Cohere v2 chat API. Dashboard logins hand out session JWTs; those are
exchanged for a raw API key before every call.
"""

from typing import Any, AsyncIterator, Dict, List, Optional

from .base import BaseProvider, Capability, ProviderConfig
from .catalog import normalize_model
from ..auth.credentials import CredentialResolver
from ..core.models import Model, SendRequest, StreamEvent
from ..routing.queue import RequestQueue
from ..streaming.classifiers import CohereChatClassifier
from ..streaming.session import StreamSession


EXCHANGE_URL = "https://production.api.os.cohere.com/rpc/BlobheartAPI/GetOrCreateDefaultAPIKey"


class CohereProvider(BaseProvider):
    """Cohere chat with session-token exchange."""

    name = "cohere"
    BASE_URL = "https://api.cohere.com"
    DEFAULT_MODEL = "command-r7b-12-2024"
    CAPABILITIES = frozenset({Capability.SEND_MESSAGE, Capability.LIST_MODELS})

    FALLBACK_MODELS = (
        Model(id="command-r7b-12-2024", name="command-r7b-12-2024", context_length=128000),
        Model(id="command-a-03-2025", name="command-a-03-2025", context_length=256000),
        Model(id="command-r-plus-08-2024", name="command-r-plus-08-2024", context_length=128000),
        Model(id="command-a-reasoning-08-2025", name="command-a-reasoning-08-2025", context_length=256000, is_thinking=True),
    )

    def __init__(self, config: Optional[ProviderConfig] = None, queue: Optional[RequestQueue] = None):
        super().__init__(config, queue)
        self.resolver = CredentialResolver(
            self.name,
            self.http,
            EXCHANGE_URL,
            key_field="rawKey",
            headers={"request-source": "playground"},
            body={"canReturnProductionKey": True},
        )

    def _payload(self, request: SendRequest) -> Dict[str, Any]:
        payload = self._chat_completions_payload(request)
        if request.thinking:
            payload["thinking"] = {"type": "enabled"}
        return payload

    async def _stream_events(self, request: SendRequest, session: StreamSession) -> AsyncIterator[StreamEvent]:
        api_key = await self.resolver.resolve(request.credential, request_id=request.request_id)
        response = await self._open_stream(
            session,
            request,
            "POST",
            "/v2/chat",
            "cohere_chat",
            json=self._payload(request),
            headers={"Authorization": f"Bearer {api_key}"},
        )
        classifier = CohereChatClassifier(self.name, request.request_id)
        async for event in session.consume(response, classifier):
            yield event

    async def _fetch_models(self, credential: str) -> List[Model]:
        api_key = await self.resolver.resolve(credential)
        data = await self.http.request_json(
            "GET",
            "/v1/models",
            "cohere_list_models",
            params={"page_size": 500, "endpoint": "chat"},
            headers={
                "Authorization": f"Bearer {api_key}",
                "x-fern-runtime": "browser",
            },
        )
        raw_models = (data or {}).get("models")
        if not isinstance(raw_models, list):
            return []
        return [
            normalize_model(
                raw,
                id_keys=("name",),
                name_keys=("name",),
                is_thinking="reasoning" in (raw.get("features") or []),
            )
            for raw in raw_models
            if isinstance(raw, dict)
        ]
