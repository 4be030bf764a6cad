"""
streamgate - Mistral Provider

Le Chat web session, two-phase protocol:
- `start` creates the chat under a client-chosen id (no user content)
- `append` sends the new user message into an existing chat

Responses are numbered patch streams (`<n>:{"json": {"patches": [...]}}`).
History is scraped from the chat page HTML.
"""

import uuid
from datetime import date
from typing import Any, AsyncIterator, Dict, List, Optional

from .base import BaseProvider, Capability
from .history import ScrapedHistory
from ..core.models import ConversationSummary, Model, SendRequest, StreamEvent
from ..streaming.classifiers import PatchStreamClassifier
from ..streaming.session import StreamSession


CHAT_ORIGIN = "https://chat.mistral.ai"

HISTORY_PATTERN = r'href=\\?"/chat/([a-f0-9-]{36})\\?".*?leading-5\.5[^>]*>([^<]+)</div>'

APPEND_FEATURES = [
    "beta-code-interpreter",
    "beta-imagegen",
    "beta-websearch",
    "beta-reasoning",
]


class MistralProvider(BaseProvider):
    """Mistral Le Chat via session cookies."""

    name = "mistral"
    BASE_URL = CHAT_ORIGIN
    DEFAULT_MODEL = "mistral-large-latest"
    CAPABILITIES = frozenset({
        Capability.SEND_MESSAGE,
        Capability.LIST_MODELS,
        Capability.LIST_CONVERSATIONS,
    })
    MODEL_PATTERNS = ("mistral",)
    BROWSER_SESSION = True

    USER_TIMEZONE = "UTC"
    ANONYMOUS_IDENTIFIER = "79zqlm"

    FALLBACK_MODELS = (
        Model(id="mistral-large-latest", name="Mistral Large", context_length=128000),
        Model(id="mistral-medium-latest", name="Mistral Medium", context_length=128000),
        Model(id="magistral-medium-latest", name="Magistral Medium", context_length=40000, is_thinking=True),
        Model(id="codestral-latest", name="Codestral", context_length=256000),
    )

    history = ScrapedHistory(HISTORY_PATTERN, provider="mistral")

    def _payload(self, chat_id: str, mode: str, content: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "chatId": chat_id,
            "mode": mode,
            "disabledFeatures": [],
            "clientPromptData": {
                "currentDate": date.today().isoformat(),
                "userTimezone": self.USER_TIMEZONE,
            },
            "stableAnonymousIdentifier": self.ANONYMOUS_IDENTIFIER,
            "shouldAwaitStreamBackgroundTasks": True,
            "shouldUseMessagePatch": True,
            "shouldUsePersistentStream": True,
        }
        if mode == "append" and content:
            payload.update({
                "messageInput": [{"type": "text", "text": content}],
                "messageFiles": [],
                "messageId": str(uuid.uuid4()),
                "features": list(APPEND_FEATURES),
                "libraries": [],
                "integrations": [],
            })
        return payload

    def _headers(self, credential: str, chat_id: str) -> Dict[str, str]:
        return {
            "Cookie": credential,
            "Origin": CHAT_ORIGIN,
            "Referer": f"{CHAT_ORIGIN}/chat/{chat_id}",
        }

    async def _stream_events(self, request: SendRequest, session: StreamSession) -> AsyncIterator[StreamEvent]:
        chat_id = request.conversation_id

        if not chat_id:
            chat_id = str(uuid.uuid4())
            yield StreamEvent.session_id(chat_id)
            response = await self._open_stream(
                session,
                request,
                "POST",
                "/api/chat",
                "mistral_start",
                json=self._payload(chat_id, "start"),
                headers=self._headers(request.credential, chat_id),
                phase="start",
            )
            await session.drain(response)

        response = await self._open_stream(
            session,
            request,
            "POST",
            "/api/chat",
            "mistral_append",
            json=self._payload(chat_id, "append", request.last_message.content),
            headers=self._headers(request.credential, chat_id),
            phase="append",
        )
        classifier = PatchStreamClassifier(self.name, request.request_id)
        async for event in session.consume(response, classifier):
            yield event

    async def _list_conversations(self, credential: str, limit: int) -> List[ConversationSummary]:
        document = await self.http.request_text(
            "GET",
            "/chat",
            "mistral_list_conversations",
            headers={"Cookie": credential},
        )
        return self.history.parse(document, limit)
