"""
streamgate - API Layer

FastAPI routes exposing each provider: model catalog, conversation history
and streaming chat over Server-Sent Events.
"""

from .models import (
    ChatMessageInput,
    ChatRequest,
    ConversationDetailResponse,
    ConversationInfo,
    ConversationListResponse,
    HistoryMessageInfo,
    ModelInfo,
    ModelListResponse,
)
from .routes import (
    AccountLookup,
    build_provider_router,
    error_response,
    format_sse,
    register_provider_routes,
)


__all__ = [
    # Routes
    "AccountLookup",
    "build_provider_router",
    "register_provider_routes",
    "error_response",
    "format_sse",
    # Request models
    "ChatMessageInput",
    "ChatRequest",
    # Response models
    "ModelInfo",
    "ModelListResponse",
    "ConversationInfo",
    "ConversationListResponse",
    "HistoryMessageInfo",
    "ConversationDetailResponse",
]
