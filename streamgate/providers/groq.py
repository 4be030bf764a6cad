"""
streamgate - Groq Provider

Groq console session: chat goes to the OpenAI-compatible endpoint with the
browser cookie header as credential; the model list comes from the console's
internal endpoint, authorized by the `stytch_session_jwt` cookie.
"""

from typing import AsyncIterator, Dict, List, Optional

from .base import BaseProvider, Capability
from .catalog import normalize_model
from ..auth.credentials import cookie_json, extract_cookie
from ..core.models import Model, SendRequest, StreamEvent
from ..observability.logging import get_logger
from ..streaming.classifiers import ChatCompletionsClassifier
from ..streaming.session import StreamSession


logger = get_logger("streamgate.providers.groq")

CONSOLE_ORIGIN = "https://console.groq.com"
SESSION_COOKIE = "stytch_session_jwt"
PREFERENCES_COOKIE = "user-preferences"


def session_token(credential: str) -> Optional[str]:
    """
    Bearer token for the console API.

    Taken from the session cookie; a credential that is not a cookie header
    at all is assumed to be the token itself.
    """
    token = extract_cookie(credential, SESSION_COOKIE)
    if token:
        return token
    if credential and "=" not in credential:
        return credential.strip()
    return None


class GroqProvider(BaseProvider):
    """Groq via console session cookies."""

    name = "groq"
    BASE_URL = "https://api.groq.com"
    DEFAULT_MODEL = "llama-3.3-70b-versatile"
    CAPABILITIES = frozenset({Capability.SEND_MESSAGE, Capability.LIST_MODELS})
    MODEL_PATTERNS = ("groq", "llama", "mixtral")
    BROWSER_SESSION = True

    FALLBACK_MODELS = (
        Model(id="llama-3.3-70b-versatile", name="Llama 3.3 70B Versatile", context_length=131072),
        Model(id="llama-3.1-8b-instant", name="Llama 3.1 8B Instant", context_length=131072),
        Model(id="openai/gpt-oss-120b", name="GPT OSS 120B", context_length=131072, is_thinking=True),
        Model(id="qwen/qwen3-32b", name="Qwen3 32B", context_length=131072, is_thinking=True),
    )

    def _session_headers(self, credential: str) -> Dict[str, str]:
        return {
            "Cookie": credential,
            "Origin": CONSOLE_ORIGIN,
            "Referer": f"{CONSOLE_ORIGIN}/",
        }

    async def _stream_events(self, request: SendRequest, session: StreamSession) -> AsyncIterator[StreamEvent]:
        response = await self._open_stream(
            session,
            request,
            "POST",
            "/openai/v1/chat/completions",
            "groq_chat",
            json=self._chat_completions_payload(request),
            headers=self._session_headers(request.credential),
        )
        classifier = ChatCompletionsClassifier(self.name, request.request_id)
        async for event in session.consume(response, classifier):
            yield event

    async def _fetch_models(self, credential: str) -> List[Model]:
        token = session_token(credential)
        if not token:
            logger.warning("No session token found in Groq credential", provider=self.name)
            return []

        headers = self._session_headers(credential)
        headers["Authorization"] = f"Bearer {token}"
        organization = (cookie_json(credential, PREFERENCES_COOKIE) or {}).get("current-org")
        if organization:
            headers["groq-organization"] = str(organization)

        data = await self.http.request_json("GET", "/internal/v1/models", "groq_list_models", headers=headers)
        raw_models = (data or {}).get("data")
        if not isinstance(raw_models, list):
            return []

        models = []
        for raw in raw_models:
            if not isinstance(raw, dict) or raw.get("active") is False:
                continue
            metadata = raw.get("metadata") or {}
            features = raw.get("features") or {}
            model = normalize_model(
                {**raw, "display_name": metadata.get("display_name"), "description": metadata.get("model_card")},
                id_keys=("id",),
                is_thinking=isinstance(features, dict) and features.get("reasoning") is True,
            )
            models.append(model)
        return models
