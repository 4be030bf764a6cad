"""
streamgate - Cerebras Provider

OpenAI-compatible chat completions with a bearer API key. The model catalog
comes from the chat app's GraphQL endpoint.
"""

from typing import AsyncIterator, List

from .base import BaseProvider, Capability
from .catalog import normalize_model
from ..core.models import Model, SendRequest, StreamEvent
from ..streaming.classifiers import ChatCompletionsClassifier
from ..streaming.session import StreamSession


GRAPHQL_URL = "https://chat.cerebras.ai/api/graphql"

LIST_MODELS_QUERY = (
    "query ListModels($organizationId: ID) {\n"
    " ListModels(organizationId: $organizationId) {\n"
    " id\n name\n description\n sortOrder\n modelVisibility\n __typename\n }\n}"
)

CONTEXT_LENGTH = 128000


class CerebrasProvider(BaseProvider):
    """Cerebras inference API."""

    name = "cerebras"
    BASE_URL = "https://api.cerebras.ai"
    DEFAULT_MODEL = "llama-3.3-70b"
    CAPABILITIES = frozenset({Capability.SEND_MESSAGE, Capability.LIST_MODELS})

    FALLBACK_MODELS = (
        Model(id="llama-3.3-70b", name="Llama 3.3 70B", context_length=128000),
        Model(id="llama3.1-8b", name="Llama 3.1 8B", context_length=128000),
        Model(id="llama3.1-70b", name="Llama 3.1 70B", context_length=128000),
        Model(id="qwen-3-32b", name="Qwen 3 32B", context_length=32768),
        Model(id="qwen-3-235b-a22b-instruct-2507", name="Qwen 3 235B Instruct", context_length=32768),
    )

    async def _stream_events(self, request: SendRequest, session: StreamSession) -> AsyncIterator[StreamEvent]:
        response = await self._open_stream(
            session,
            request,
            "POST",
            "/v1/chat/completions",
            "cerebras_chat",
            json=self._chat_completions_payload(request),
            headers={"Authorization": f"Bearer {request.credential}"},
        )
        classifier = ChatCompletionsClassifier(self.name, request.request_id)
        async for event in session.consume(response, classifier):
            yield event

    async def _fetch_models(self, credential: str) -> List[Model]:
        data = await self.http.request_json(
            "POST",
            GRAPHQL_URL,
            "cerebras_list_models",
            json={
                "operationName": "ListModels",
                "variables": {"organizationId": "**personal"},
                "query": LIST_MODELS_QUERY,
            },
            headers={"Authorization": f"Bearer {credential}"},
        )
        raw_models = ((data or {}).get("data") or {}).get("ListModels")
        if not isinstance(raw_models, list):
            return []
        return [
            normalize_model(raw, name_keys=("name", "id"), context_length=CONTEXT_LENGTH)
            for raw in raw_models
        ]
