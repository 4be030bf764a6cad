"""
streamgate Core Module

Canonical data models, error taxonomy, configuration and the provider HTTP
client.
"""

from .models import (
    # Enums
    Role,
    StreamEventType,

    # Messages & requests
    Message,
    SendRequest,
    StreamCallbacks,

    # Events
    StreamEvent,

    # Catalog & history
    Model,
    ConversationSummary,
    ConversationDetail,
    HistoryMessage,
)

from .errors import (
    ErrorType,
    ErrorDetails,
    GatewayException,
    InfraError,
    TransportError,
    StreamTimeoutError,
    UpstreamError,
    StreamPayloadError,
    EmptyResponseError,
    SemanticError,
    InvalidRequestError,
    MissingCredentialError,
    UnsupportedOperationError,
    UnknownProviderError,
    handle_transport_error,
)

from .config import GatewaySettings, get_settings

__all__ = [
    "Role",
    "StreamEventType",
    "Message",
    "SendRequest",
    "StreamCallbacks",
    "StreamEvent",
    "Model",
    "ConversationSummary",
    "ConversationDetail",
    "HistoryMessage",
    "ErrorType",
    "ErrorDetails",
    "GatewayException",
    "InfraError",
    "TransportError",
    "StreamTimeoutError",
    "UpstreamError",
    "StreamPayloadError",
    "EmptyResponseError",
    "SemanticError",
    "InvalidRequestError",
    "MissingCredentialError",
    "UnsupportedOperationError",
    "UnknownProviderError",
    "handle_transport_error",
    "GatewaySettings",
    "get_settings",
]
