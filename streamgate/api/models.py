"""
streamgate - API Request/Response Models

Pydantic models for the provider routes. These are the external-facing
shapes; handlers convert them to the core dataclasses.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.models import (
    ConversationDetail,
    ConversationSummary,
    Message,
    Model,
    Role,
    SendRequest,
)


# ============================================================
# Chat Request
# ============================================================

class ChatMessageInput(BaseModel):
    """One conversation turn as sent by the client."""
    role: Role = Role.USER
    content: str = Field(..., description="Plain text content of the turn")

    def to_message(self) -> Message:
        return Message(role=self.role, content=self.content)


class ChatRequest(BaseModel):
    """
    Streaming chat request for a single provider.

    The credential is never part of the body; it comes from the account
    lookup configured on the router.
    """
    messages: List[ChatMessageInput] = Field(
        ...,
        min_length=1,
        description="Conversation so far; the last entry is the new user turn"
    )
    model: Optional[str] = Field(
        default=None,
        description="Model id; the provider default is used when omitted"
    )
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    thinking: bool = Field(
        default=False,
        description="Request reasoning output where the backend supports it"
    )
    conversation_id: Optional[str] = Field(
        default=None,
        description="Continue an existing upstream conversation"
    )
    timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Overall deadline in seconds for the streaming call"
    )

    @field_validator("messages")
    @classmethod
    def validate_messages(cls, v):
        """Validate messages are not empty."""
        if not v:
            raise ValueError("messages cannot be empty")
        return v

    def to_send_request(self, credential: str) -> SendRequest:
        return SendRequest(
            credential=credential,
            messages=tuple(m.to_message() for m in self.messages),
            model=self.model,
            temperature=self.temperature,
            thinking=self.thinking,
            conversation_id=self.conversation_id,
            timeout=self.timeout,
        )


# ============================================================
# Catalog
# ============================================================

class ModelInfo(BaseModel):
    """A model entry."""
    id: str
    name: str
    context_length: Optional[int] = None
    is_thinking: bool = False
    description: Optional[str] = None

    @classmethod
    def from_model(cls, model: Model) -> "ModelInfo":
        return cls(**model.to_dict())


class ModelListResponse(BaseModel):
    """List of models for one provider."""
    object: str = "list"
    provider: str
    data: List[ModelInfo]


# ============================================================
# History
# ============================================================

class ConversationInfo(BaseModel):
    """One entry of a conversation list."""
    id: str
    title: str
    timestamp: Optional[float] = None

    @classmethod
    def from_summary(cls, summary: ConversationSummary) -> "ConversationInfo":
        return cls(**summary.to_dict())


class ConversationListResponse(BaseModel):
    """Conversation list for one provider."""
    object: str = "list"
    provider: str
    data: List[ConversationInfo]


class HistoryMessageInfo(BaseModel):
    """A message inside a conversation."""
    id: Optional[str] = None
    role: Role
    content: str
    timestamp: Optional[float] = None


class ConversationDetailResponse(BaseModel):
    """A full conversation."""
    model_config = ConfigDict(use_enum_values=True)

    provider: str
    conversation_id: str
    conversation_title: str
    updated_at: Optional[float] = None
    messages: List[HistoryMessageInfo] = Field(default_factory=list)

    @classmethod
    def from_detail(cls, provider: str, detail: ConversationDetail) -> "ConversationDetailResponse":
        data: Dict[str, Any] = detail.to_dict()
        return cls(provider=provider, **data)
