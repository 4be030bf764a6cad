"""
streamgate - Provider HTTP Client

httpx wrapper shared by all provider backends:
- Request correlation (request_id logging)
- Step-based logging with redacted payload summaries
- Streaming responses with status checks before the body is consumed
- Injectable transport for tests

No retries: a failed call surfaces as exactly one error.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from .errors import StreamPayloadError, UpstreamError, handle_transport_error
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics


logger = get_logger("streamgate.http")


@dataclass
class RequestContext:
    """Context for tracking a request through the logs."""
    request_id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")
    step_name: str = ""
    provider: str = ""
    model: str = ""

    def to_log_extra(self) -> Dict[str, str]:
        extra = {"request_id": self.request_id, "step": self.step_name, "provider": self.provider}
        if self.model:
            extra["model"] = self.model
        return extra


class ProviderHttpClient:
    """
    HTTP client for one provider backend.

    Relative paths are resolved against `base_url`; absolute URLs (used for
    auxiliary hosts such as token exchange or GraphQL endpoints) are sent
    as-is.
    """

    SENSITIVE_KEYS = ("api_key", "key", "token", "secret", "password", "authorization", "cookie")

    def __init__(
        self,
        provider: str,
        base_url: str = "",
        timeout: float = 60.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_headers = headers or {}
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            kwargs: Dict[str, Any] = {
                "base_url": self.base_url,
                "timeout": self.timeout,
                "headers": self.default_headers,
            }
            if self.transport is not None:
                kwargs["transport"] = self.transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _summarize_payload(self, payload: Optional[Dict[str, Any]]) -> str:
        """Create safe payload summary (no secrets)."""
        summary = {}
        for key, value in (payload or {}).items():
            if key.lower() in self.SENSITIVE_KEYS:
                summary[key] = "***REDACTED***"
            elif key in ("messages", "messageInput") and isinstance(value, list):
                summary[key] = f"[{len(value)} messages]"
            elif isinstance(value, str) and len(value) > 100:
                summary[key] = f"{value[:50]}...({len(value)} chars)"
            else:
                summary[key] = value
        return str(summary)

    def _log_request_start(self, ctx: RequestContext, method: str, url: str, payload: Optional[Dict[str, Any]]):
        logger.info(
            f"STEP [{ctx.step_name}] Starting {method} {url}",
            extra=ctx.to_log_extra()
        )
        if payload:
            logger.debug(
                f"Payload summary: {self._summarize_payload(payload)}",
                extra=ctx.to_log_extra()
            )

    def _log_response(self, ctx: RequestContext, status: int, latency_ms: float):
        level_method = logger.info if status < 400 else logger.warning
        level_method(
            f"STEP [{ctx.step_name}] Response: status={status}, latency={latency_ms:.0f}ms",
            extra=ctx.to_log_extra()
        )

    def build_request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Request:
        """Build a request against this provider's client."""
        kwargs: Dict[str, Any] = {"headers": headers, "params": params}
        if json is not None:
            kwargs["json"] = json
        if files is not None:
            kwargs["files"] = files
        return self._get_client().build_request(method, url, **kwargs)

    async def send(
        self,
        request: httpx.Request,
        ctx: RequestContext,
        stream: bool = False,
        payload: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send a built request.

        With `stream=True` the body is left unread for the caller to iterate;
        the caller owns closing the response.

        Raises:
            UpstreamError: Non-2xx status (body captured)
            TransportError: Connection/read failure or timeout
        """
        self._log_request_start(ctx, request.method, str(request.url), payload)
        client = self._get_client()
        start_time = time.time()

        try:
            response = await client.send(request, stream=stream)
        except httpx.HTTPError as e:
            logger.warning(
                f"STEP [{ctx.step_name}] Transport failure: {type(e).__name__}: {e}",
                extra=ctx.to_log_extra()
            )
            raise handle_transport_error(e, self.provider, ctx.request_id)

        latency_ms = (time.time() - start_time) * 1000
        self._log_response(ctx, response.status_code, latency_ms)

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                body = ""
            finally:
                await response.aclose()
            get_metrics().record_upstream_error(self.provider, response.status_code)
            logger.error(
                f"{self.provider} API returned {response.status_code}: {body[:300]}",
                extra=ctx.to_log_extra()
            )
            raise UpstreamError(self.provider, response.status_code, body, request_id=ctx.request_id)

        return response

    async def request(
        self,
        method: str,
        url: str,
        step_name: str = "http_request",
        *,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> httpx.Response:
        """Make a non-streaming request and return the fully read response."""
        ctx = RequestContext(
            request_id=request_id or f"req_{uuid.uuid4().hex[:12]}",
            step_name=step_name,
            provider=self.provider,
        )
        request = self.build_request(method, url, json=json, headers=headers, params=params)
        return await self.send(request, ctx, payload=json)

    async def request_json(self, method: str, url: str, step_name: str = "http_request", **kwargs) -> Any:
        """
        Make a request and decode the JSON body.

        Raises:
            StreamPayloadError: 2xx response whose body is not JSON
        """
        response = await self.request(method, url, step_name, **kwargs)
        try:
            return response.json()
        except ValueError:
            logger.warning(
                f"STEP [{step_name}] Response is not JSON: {response.text[:200]}",
                provider=self.provider,
            )
            raise StreamPayloadError(
                self.provider,
                f"expected JSON from {url}, got {response.headers.get('content-type', 'unknown content')}",
                request_id=kwargs.get("request_id") or "",
            )

    async def request_text(self, method: str, url: str, step_name: str = "http_request", **kwargs) -> str:
        """Make a request and return the body as text (HTML scraping)."""
        response = await self.request(method, url, step_name, **kwargs)
        return response.text
