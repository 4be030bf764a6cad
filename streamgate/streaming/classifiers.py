"""
streamgate - Stream Event Classifiers

Per-dialect parsers that turn one complete line into canonical events.

Dialects:
- SSE (`data: <json>` frames, `data: [DONE]` sentinel)
- Numbered patch stream (`<int>:<json>` with a `patches` array)
- Raw NDJSON (one object per line, `type` discriminator)

Every classifier follows the same policy: a line that is not JSON, or is JSON
of an unknown shape, becomes an IGNORE event. Classification never raises.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.errors import StreamPayloadError
from ..core.models import StreamEvent


class LineClassifier(ABC):
    """Base class for line classifiers."""

    def __init__(self, provider: str = "", request_id: str = ""):
        self.provider = provider
        self.request_id = request_id

    @abstractmethod
    def classify(self, line: str) -> List[StreamEvent]:
        """
        Classify one complete line.

        Returns:
            One or more events; `[StreamEvent.ignore()]` when the line carries
            nothing usable.
        """
        pass

    @staticmethod
    def _loads(text: str) -> Optional[Any]:
        try:
            return json.loads(text)
        except ValueError:
            return None


# ============================================================
# SSE
# ============================================================

class SSEClassifier(LineClassifier):
    """
    `data: ` framed lines.

    The `[DONE]` sentinel is a terminal signal; subclasses only see decoded
    JSON objects through `extract`.
    """

    PREFIX = "data: "
    DONE_SENTINEL = "[DONE]"

    def classify(self, line: str) -> List[StreamEvent]:
        stripped = line.strip()
        if not stripped or not stripped.startswith(self.PREFIX):
            return [StreamEvent.ignore()]

        data = stripped[len(self.PREFIX):].strip()
        if data == self.DONE_SENTINEL:
            return [StreamEvent.done()]

        payload = self._loads(data)
        if not isinstance(payload, dict):
            return [StreamEvent.ignore()]

        return self.extract(payload) or [StreamEvent.ignore()]

    @abstractmethod
    def extract(self, payload: Dict[str, Any]) -> List[StreamEvent]:
        """Map one decoded frame to events."""
        pass


class ChatCompletionsClassifier(SSEClassifier):
    """OpenAI-compatible chat completion chunks (Cerebras, Groq)."""

    def extract(self, payload: Dict[str, Any]) -> List[StreamEvent]:
        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return [StreamEvent.failure(
                StreamPayloadError(self.provider, message or "unknown error", request_id=self.request_id)
            )]

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []

        delta = choices[0].get("delta") or {}
        events = []

        reasoning = delta.get("reasoning") or delta.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            events.append(StreamEvent.thinking(reasoning))

        content = delta.get("content")
        if isinstance(content, str) and content:
            events.append(StreamEvent.content(content))

        return events


class CohereChatClassifier(SSEClassifier):
    """Cohere v2 chat events; only `content-delta` carries text."""

    def extract(self, payload: Dict[str, Any]) -> List[StreamEvent]:
        if payload.get("type") != "content-delta":
            return []

        delta = payload.get("delta") or {}
        content = ((delta.get("message") or {}).get("content")) or {}
        if not isinstance(content, dict):
            return []

        thinking = content.get("thinking")
        if isinstance(thinking, str) and thinking:
            return [StreamEvent.thinking(thinking)]

        text = content.get("text")
        if isinstance(text, str) and text:
            return [StreamEvent.content(text)]

        return []


# ============================================================
# Numbered patch stream
# ============================================================

class PatchStreamClassifier(LineClassifier):
    """
    `<int>:<json>` lines carrying JSON-patch style updates (Mistral).

    Only `append`/`add` patches targeting a `/text` path produce content.
    """

    TEXT_OPS = ("append", "add")

    def classify(self, line: str) -> List[StreamEvent]:
        stripped = line.strip()
        index = stripped.find(":")
        if index <= 0 or not stripped[:index].strip().isdigit():
            return [StreamEvent.ignore()]

        payload = self._loads(stripped[index + 1:])
        if not isinstance(payload, dict):
            return [StreamEvent.ignore()]

        wrapped = payload.get("json")
        patches = wrapped.get("patches") if isinstance(wrapped, dict) else None
        if patches is None:
            patches = payload.get("patches")
        if not isinstance(patches, list):
            return [StreamEvent.ignore()]

        events = []
        for patch in patches:
            if not isinstance(patch, dict):
                continue
            path = patch.get("path")
            value = patch.get("value")
            if (
                patch.get("op") in self.TEXT_OPS
                and isinstance(path, str) and path.endswith("/text")
                and isinstance(value, str) and value
            ):
                events.append(StreamEvent.content(value))

        return events or [StreamEvent.ignore()]


# ============================================================
# NDJSON
# ============================================================

class NDJSONClassifier(LineClassifier):
    """
    Raw NDJSON objects (HuggingChat).

    With `split_thinking=True`, `<think>...</think>` spans inside streamed
    tokens become THINKING events. The open/closed state survives across
    lines, so one classifier instance must serve exactly one stream.
    """

    NULL_ESCAPE = "\\u0000"
    THINK_OPEN = "<think>"
    THINK_CLOSE = "</think>"

    def __init__(self, provider: str = "", request_id: str = "", split_thinking: bool = False):
        super().__init__(provider, request_id)
        self.split_thinking = split_thinking
        self._in_think = False

    def classify(self, line: str) -> List[StreamEvent]:
        cleaned = line.replace(self.NULL_ESCAPE, "").replace("\x00", "").strip()
        if not cleaned:
            return [StreamEvent.ignore()]

        payload = self._loads(cleaned)
        if not isinstance(payload, dict):
            return [StreamEvent.ignore()]

        return self._classify_object(payload) or [StreamEvent.ignore()]

    def _classify_object(self, obj: Dict[str, Any]) -> List[StreamEvent]:
        kind = obj.get("type")
        events: List[StreamEvent] = []

        if kind == "stream":
            token = obj.get("token")
            if isinstance(token, str) and token:
                events.extend(self._split_token(token))
        elif kind == "title":
            title = obj.get("title")
            if isinstance(title, str) and title:
                events.append(StreamEvent.title(title))
        elif kind == "conversation":
            conversation_id = obj.get("conversationId") or obj.get("id")
            if isinstance(conversation_id, str) and conversation_id:
                events.append(StreamEvent.session_id(conversation_id))

        updates = obj.get("updates")
        if isinstance(updates, list):
            for update in updates:
                if isinstance(update, dict):
                    events.extend(self._classify_object(update))

        return events

    def _split_token(self, token: str) -> List[StreamEvent]:
        if not self.split_thinking:
            return [StreamEvent.content(token)]

        events = []
        remaining = token
        while remaining:
            marker = self.THINK_CLOSE if self._in_think else self.THINK_OPEN
            index = remaining.find(marker)
            if index == -1:
                events.append(self._piece(remaining))
                break
            if index > 0:
                events.append(self._piece(remaining[:index]))
            self._in_think = not self._in_think
            remaining = remaining[index + len(marker):]
        return events

    def _piece(self, text: str) -> StreamEvent:
        if self._in_think:
            return StreamEvent.thinking(text)
        return StreamEvent.content(text)
