"""
streamgate - HuggingChat Provider

HuggingChat web session (cookie credential). Sending is a three-step flow:
1. Create a conversation (skipped when the caller passes one)
2. Read the conversation to find the parent message id
3. Post the user message as multipart form field `data`; the reply streams
   back as NDJSON with `<think>` spans for reasoning models
"""

import json
import uuid
from typing import Any, AsyncIterator, Dict, List

from .base import BaseProvider, Capability
from .catalog import first_context_length, normalize_model
from .history import StructuredHistory, parse_timestamp
from ..core.errors import StreamPayloadError
from ..core.models import (
    ConversationDetail,
    ConversationSummary,
    HistoryMessage,
    Model,
    Role,
    SendRequest,
    StreamEvent,
)
from ..streaming.classifiers import NDJSONClassifier
from ..streaming.session import StreamSession


ORIGIN = "https://huggingface.co"


def _unwrap(data: Any) -> Any:
    """Responses come either bare or wrapped as `{"json": ...}`."""
    if isinstance(data, dict) and "json" in data:
        return data["json"]
    return data


def parent_message_id(detail: Dict[str, Any]) -> str:
    """Id to reply to: the last message, else the root message, else a fresh id."""
    messages = detail.get("messages") or []
    if messages and isinstance(messages[-1], dict) and messages[-1].get("id"):
        return str(messages[-1]["id"])
    if detail.get("rootMessageId"):
        return str(detail["rootMessageId"])
    return str(uuid.uuid4())


class HuggingChatProvider(BaseProvider):
    """HuggingChat via session cookies."""

    name = "huggingchat"
    BASE_URL = ORIGIN
    DEFAULT_MODEL = "omni"
    CAPABILITIES = frozenset({
        Capability.SEND_MESSAGE,
        Capability.LIST_MODELS,
        Capability.LIST_CONVERSATIONS,
        Capability.GET_CONVERSATION,
    })
    BROWSER_SESSION = True

    FALLBACK_MODELS = (
        Model(id="omni", name="Omni"),
        Model(id="meta-llama/Llama-3.3-70B-Instruct", name="Llama 3.3 70B Instruct", context_length=131072),
        Model(id="Qwen/Qwen3-235B-A22B", name="Qwen3 235B A22B", context_length=32768, is_thinking=True),
        Model(id="deepseek-ai/DeepSeek-R1", name="DeepSeek R1", context_length=131072, is_thinking=True),
    )

    history = StructuredHistory(id_keys=("id", "_id"), title_keys=("title",))

    def _headers(self, credential: str) -> Dict[str, str]:
        return {"Cookie": credential, "Accept": "application/json"}

    async def _stream_events(self, request: SendRequest, session: StreamSession) -> AsyncIterator[StreamEvent]:
        headers = self._headers(request.credential)
        conversation_id = request.conversation_id

        if not conversation_id:
            created = await session.call(lambda: self.http.request_json(
                "POST",
                "/chat/conversation",
                "huggingchat_create",
                json={"model": self.resolve_model(request.model), "preprompt": ""},
                headers=headers,
                request_id=request.request_id,
            ))
            conversation_id = (_unwrap(created) or {}).get("conversationId")
            if not conversation_id:
                raise StreamPayloadError(self.name, "create response has no conversationId", request_id=request.request_id)

        detail = await session.call(lambda: self.http.request_json(
            "GET",
            f"/chat/api/v2/conversations/{conversation_id}",
            "huggingchat_detail",
            headers=headers,
            request_id=request.request_id,
        ))
        parent_id = parent_message_id(_unwrap(detail) or {})

        form_data = {
            "inputs": request.last_message.content,
            "id": parent_id,
            "is_retry": False,
            "is_continue": False,
            "selectedMcpServerNames": [],
            "selectedMcpServers": [],
        }
        response = await self._open_stream(
            session,
            request,
            "POST",
            f"/chat/conversation/{conversation_id}",
            "huggingchat_send",
            files={"data": (None, json.dumps(form_data))},
            headers={
                "Cookie": request.credential,
                "Origin": ORIGIN,
                "Referer": f"{ORIGIN}/chat/conversation/{conversation_id}",
            },
        )

        yield StreamEvent.session_id(conversation_id)
        classifier = NDJSONClassifier(self.name, request.request_id, split_thinking=True)
        async for event in session.consume(response, classifier):
            yield event

    async def _fetch_models(self, credential: str) -> List[Model]:
        data = await self.http.request_json(
            "GET", "/chat/api/v2/models", "huggingchat_list_models", headers=self._headers(credential)
        )
        raw_models = _unwrap(data)
        if isinstance(raw_models, dict):
            raw_models = raw_models.get("models")
        if not isinstance(raw_models, list):
            return []
        return [
            normalize_model(
                raw,
                id_keys=("id",),
                name_keys=("displayName", "name", "id"),
                context_length=first_context_length(raw.get("providers")),
            )
            for raw in raw_models
            if isinstance(raw, dict)
        ]

    async def _list_conversations(self, credential: str, limit: int) -> List[ConversationSummary]:
        data = await self.http.request_json(
            "GET",
            "/chat/api/v2/conversations",
            "huggingchat_list_conversations",
            params={"p": 0},
            headers=self._headers(credential),
        )
        payload = _unwrap(data)
        items = payload.get("conversations") if isinstance(payload, dict) else payload
        return self.history.parse(items, limit)

    async def _get_conversation(self, credential: str, conversation_id: str) -> ConversationDetail:
        data = await self.http.request_json(
            "GET",
            f"/chat/api/v2/conversations/{conversation_id}",
            "huggingchat_get_conversation",
            headers=self._headers(credential),
        )
        detail = _unwrap(data) or {}

        messages = []
        for raw in detail.get("messages") or []:
            if not isinstance(raw, dict):
                continue
            sender = raw.get("from")
            messages.append(HistoryMessage(
                id=raw.get("id"),
                role=Role.parse(sender) if sender in ("user", "assistant") else Role.SYSTEM,
                content=raw.get("content") or "",
                timestamp=parse_timestamp(raw.get("createdAt")),
            ))

        return ConversationDetail(
            id=str(detail.get("id") or conversation_id),
            title=detail.get("title") or "Untitled",
            updated_at=parse_timestamp(detail.get("updatedAt")),
            messages=messages,
        )
