"""
streamgate - Core Data Models

Canonical data models shared by every provider backend.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple


# ============================================================
# Enums
# ============================================================

class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Lenient role parsing; anything unknown is treated as a user turn."""
        if isinstance(value, Role):
            return value
        text = str(value or "").strip().lower()
        for role in cls:
            if role.value == text:
                return role
        return cls.USER


class StreamEventType(str, Enum):
    """Canonical stream event kinds."""
    CONTENT = "content"
    THINKING = "thinking"
    TITLE = "title"
    SESSION_ID = "session_id"
    META = "meta"
    ERROR = "error"
    DONE = "done"
    IGNORE = "ignore"


TERMINAL_EVENT_TYPES = frozenset({StreamEventType.DONE, StreamEventType.ERROR})


# ============================================================
# Messages & Requests
# ============================================================

@dataclass(frozen=True)
class Message:
    """A single conversation turn. Immutable once built."""
    role: Role
    content: str

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=content)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class SendRequest:
    """
    Uniform "send conversation, get streamed tokens" request.

    `credential` is opaque: an API key, a session token or a cookie header
    depending on the backend. `timeout` is an overall deadline in seconds for
    the whole streaming call (None disables it).
    """
    credential: str
    messages: Tuple[Message, ...]
    model: Optional[str] = None
    temperature: Optional[float] = None
    thinking: bool = False
    conversation_id: Optional[str] = None
    timeout: Optional[float] = None
    request_id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")

    def __post_init__(self):
        from .errors import InvalidRequestError

        self.messages = tuple(self.messages)
        if not self.messages:
            raise InvalidRequestError(
                "messages must contain at least one message",
                param="messages",
                request_id=self.request_id,
            )
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidRequestError(
                "timeout must be positive",
                param="timeout",
                request_id=self.request_id,
            )

    @property
    def last_message(self) -> Message:
        return self.messages[-1]

    def wire_messages(self) -> List[Dict[str, str]]:
        """Messages in the flat `{role, content}` shape most backends accept."""
        return [m.to_dict() for m in self.messages]


# ============================================================
# Stream Events
# ============================================================

@dataclass
class StreamEvent:
    """
    One canonical stream event.

    Content/thinking/title/session id carry `text`; metadata carries `data`;
    error events carry the exception in `error`.
    """
    type: StreamEventType
    text: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None

    @classmethod
    def content(cls, text: str) -> "StreamEvent":
        return cls(StreamEventType.CONTENT, text=text)

    @classmethod
    def thinking(cls, text: str) -> "StreamEvent":
        return cls(StreamEventType.THINKING, text=text)

    @classmethod
    def title(cls, text: str) -> "StreamEvent":
        return cls(StreamEventType.TITLE, text=text)

    @classmethod
    def session_id(cls, session_id: str) -> "StreamEvent":
        return cls(StreamEventType.SESSION_ID, text=session_id)

    @classmethod
    def meta(cls, data: Dict[str, Any]) -> "StreamEvent":
        return cls(StreamEventType.META, data=dict(data))

    @classmethod
    def failure(cls, error: Exception) -> "StreamEvent":
        return cls(StreamEventType.ERROR, text=str(error), error=error)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(StreamEventType.DONE)

    @classmethod
    def ignore(cls) -> "StreamEvent":
        return cls(StreamEventType.IGNORE)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used by the SSE route."""
        result: Dict[str, Any] = {"type": self.type.value}
        if self.text:
            result["text"] = self.text
        if self.data:
            result["data"] = self.data
        if self.error is not None:
            details = getattr(self.error, "error", None)
            if details is not None and hasattr(details, "to_dict"):
                result["error"] = details.to_dict()["error"]
            else:
                result["error"] = {"message": str(self.error)}
        return result


@dataclass
class StreamCallbacks:
    """
    Callback-style consumer of a stream.

    Exactly one of `on_done` / `on_error` fires, once, after zero or more
    content/thinking/metadata calls.
    """
    on_content: Callable[[str], None]
    on_done: Callable[[], None]
    on_error: Callable[[Exception], None]
    on_thinking: Optional[Callable[[str], None]] = None
    on_metadata: Optional[Callable[[Dict[str, Any]], None]] = None


# ============================================================
# Model Catalog
# ============================================================

@dataclass
class Model:
    """A model exposed by a provider, normalized across backends."""
    id: str
    name: str
    context_length: Optional[int] = None
    is_thinking: bool = False
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "context_length": self.context_length,
            "is_thinking": self.is_thinking,
            "description": self.description,
        }


# ============================================================
# Conversation History
# ============================================================

@dataclass
class ConversationSummary:
    """One entry of a provider's conversation list."""
    id: str
    title: str
    timestamp: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "timestamp": self.timestamp}


@dataclass
class HistoryMessage:
    """A message inside a fetched conversation."""
    id: Optional[str]
    role: Role
    content: str
    timestamp: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }


@dataclass
class ConversationDetail:
    """A full conversation with its messages."""
    id: str
    title: str
    updated_at: Optional[float] = None
    messages: List[HistoryMessage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.id,
            "conversation_title": self.title,
            "updated_at": self.updated_at,
            "messages": [m.to_dict() for m in self.messages],
        }
