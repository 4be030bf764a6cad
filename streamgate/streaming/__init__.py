"""
streamgate - Streaming Module

Two-stage pipeline shared by every backend:
- Line framing across network chunk boundaries
- Per-dialect classification into canonical events (SSE, patch, NDJSON)

plus the stream session state machine and the cancellable event channel.
"""

from .framer import LineFramer, iter_lines
from .classifiers import (
    LineClassifier,
    SSEClassifier,
    ChatCompletionsClassifier,
    CohereChatClassifier,
    PatchStreamClassifier,
    NDJSONClassifier,
)
from .session import (
    EventStream,
    StreamSession,
    StreamState,
    THINKING_PREFIX,
)

__all__ = [
    # Framing
    "LineFramer",
    "iter_lines",
    # Classifiers
    "LineClassifier",
    "SSEClassifier",
    "ChatCompletionsClassifier",
    "CohereChatClassifier",
    "PatchStreamClassifier",
    "NDJSONClassifier",
    # Sessions
    "EventStream",
    "StreamSession",
    "StreamState",
    "THINKING_PREFIX",
]
