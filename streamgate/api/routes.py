"""
streamgate - Provider Routes

Mounts one `/{provider}` sub-router per registered backend:

- GET  /{provider}/models
- GET  /{provider}/conversations                      (history providers only)
- GET  /{provider}/conversations/{conversation_id}    (history providers only)
- POST /{provider}/chat                               (SSE of canonical events)

Credentials come from an account lookup supplied by the host application;
a provider without a stored credential answers 401.
"""

import json
from typing import AsyncIterator, Callable, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .models import (
    ChatRequest,
    ConversationDetailResponse,
    ConversationInfo,
    ConversationListResponse,
    ModelInfo,
    ModelListResponse,
)
from ..core.errors import GatewayException, MissingCredentialError
from ..core.models import StreamEvent, StreamEventType
from ..observability.logging import LogContext, get_logger
from ..providers import ProviderRegistry
from ..providers.base import BaseProvider, Capability
from ..streaming.session import EventStream


logger = get_logger("streamgate.api")

AccountLookup = Callable[[Request, str], Optional[str]]


# ============================================================
# Helpers
# ============================================================

def error_response(exc: GatewayException) -> JSONResponse:
    """Canonical JSON error body with diagnostic headers."""
    headers = {
        "X-Error-Type": exc.error.type.value,
        "X-Error-Code": exc.error.code,
    }
    if exc.error.request_id:
        headers["X-Request-Id"] = exc.error.request_id
    if exc.error.provider:
        headers["X-Provider"] = exc.error.provider

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.error.to_dict(),
        headers=headers,
    )


def format_sse(event: StreamEvent) -> str:
    return f"data: {json.dumps(event.to_dict())}\n\n"


def _credential(request: Request, provider: BaseProvider, account_lookup: AccountLookup) -> str:
    credential = account_lookup(request, provider.name)
    if not credential:
        raise MissingCredentialError(provider.name)
    return credential


async def _sse_events(first: StreamEvent, stream: EventStream) -> AsyncIterator[str]:
    try:
        yield format_sse(first)
        if first.is_terminal:
            return
        async for event in stream:
            yield format_sse(event)
    finally:
        # Client disconnects land here too; release the upstream connection.
        await stream.aclose()


# ============================================================
# Per-provider Router
# ============================================================

def build_provider_router(provider: BaseProvider, account_lookup: AccountLookup) -> APIRouter:
    """
    Build the sub-router for one provider.

    Routes are only mounted for capabilities the provider declares.
    """
    router = APIRouter(prefix=f"/{provider.name}", tags=[provider.name])

    @router.get("/models", response_model=ModelListResponse)
    async def list_models(request: Request):
        """
        List models for this provider.

        Falls back to the static catalog when the live fetch fails or
        returns nothing.
        """
        try:
            credential = _credential(request, provider, account_lookup)
        except GatewayException as e:
            return error_response(e)

        models = await provider.list_models(credential)
        return ModelListResponse(
            provider=provider.name,
            data=[ModelInfo.from_model(m) for m in models],
        )

    if provider.supports(Capability.LIST_CONVERSATIONS):
        @router.get("/conversations", response_model=ConversationListResponse)
        async def list_conversations(
            request: Request,
            limit: int = Query(default=30, ge=1, le=200),
        ):
            """List the account's conversations, most recent first."""
            try:
                credential = _credential(request, provider, account_lookup)
                conversations = await provider.list_conversations(credential, limit=limit)
            except GatewayException as e:
                return error_response(e)

            return ConversationListResponse(
                provider=provider.name,
                data=[ConversationInfo.from_summary(c) for c in conversations],
            )

    if provider.supports(Capability.GET_CONVERSATION):
        @router.get("/conversations/{conversation_id}", response_model=ConversationDetailResponse)
        async def get_conversation(request: Request, conversation_id: str):
            """Fetch one conversation with its messages."""
            try:
                credential = _credential(request, provider, account_lookup)
                detail = await provider.get_conversation(credential, conversation_id)
            except GatewayException as e:
                return error_response(e)

            return ConversationDetailResponse.from_detail(provider.name, detail)

    if provider.supports(Capability.SEND_MESSAGE):
        @router.post("/chat")
        async def chat(request: Request, body: ChatRequest):
            """
            Stream a reply as Server-Sent Events.

            **Events:** one `data:` line per canonical event (`content`,
            `thinking`, `title`, `session_id`, `meta`), ending with exactly
            one `done` or `error` event.

            **Errors:** failures before the first event is produced (bad
            credential, upstream 4xx/5xx) are returned as a JSON error with
            the mapped status code instead of a stream.
            """
            try:
                credential = _credential(request, provider, account_lookup)
                send_request = body.to_send_request(credential)
            except GatewayException as e:
                return error_response(e)

            LogContext.set_current(LogContext(
                request_id=send_request.request_id,
                provider=provider.name,
                model=provider.resolve_model(send_request.model),
                conversation_id=send_request.conversation_id or "",
            ))

            stream = provider.send_message(send_request)
            try:
                first = await stream.__anext__()
            except StopAsyncIteration:
                first = StreamEvent.done()

            if first.type == StreamEventType.ERROR and isinstance(first.error, GatewayException):
                await stream.aclose()
                return error_response(first.error)

            return StreamingResponse(
                _sse_events(first, stream),
                media_type="text/event-stream",
                headers={
                    "Cache-Control": "no-cache",
                    "Connection": "keep-alive",
                    "X-Request-Id": send_request.request_id,
                    "X-Provider": provider.name,
                },
            )

    return router


# ============================================================
# Registration Hook
# ============================================================

def register_provider_routes(
    router: APIRouter,
    registry: ProviderRegistry,
    account_lookup: AccountLookup,
) -> APIRouter:
    """
    Mount every provider in `registry` on `router`.

    Also adds `GET /providers`, listing each backend with its capabilities.
    """
    for provider in registry:
        router.include_router(build_provider_router(provider, account_lookup))

    @router.get("/providers")
    async def list_providers():
        return {
            "object": "list",
            "data": [
                {
                    "id": provider.name,
                    "capabilities": sorted(c.value for c in provider.CAPABILITIES),
                }
                for provider in registry
            ],
        }

    logger.info(f"Registered routes for {len(registry.names())} providers", providers=registry.names())
    return router
