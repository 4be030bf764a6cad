"""
streamgate - Error Definitions

Error taxonomy with infra vs semantic classification.

Infra errors come from the network or the upstream backend (transport
failures, non-2xx responses, missing bodies, deadlines). Semantic errors mean
the caller must change something (invalid request, unsupported capability,
unknown provider).

Nothing in this package retries, so every error reports `retryable=False`;
retry policy belongs to the caller.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information."""
    # Core fields (always present)
    code: str
    message: str
    type: ErrorType

    # Context fields
    provider: Optional[str] = None
    param: Optional[str] = None

    # Trace fields
    request_id: str = ""

    # Upstream fields
    upstream_status: Optional[int] = None
    upstream_body: Optional[str] = None

    retryable: bool = False

    # Debug fields
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "message": self.message,
            "type": self.type.value,
            "request_id": self.request_id,
            "retryable": self.retryable,
        }

        if self.provider:
            result["provider"] = self.provider
        if self.param:
            result["param"] = self.param
        if self.upstream_status is not None:
            result["upstream_status"] = self.upstream_status
        if self.upstream_body:
            result["upstream_body"] = self.upstream_body
        if self.details:
            result["details"] = self.details

        return {"error": result}


class GatewayException(Exception):
    """Base exception for all streamgate errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)


# ============================================================
# Infra Errors
# ============================================================

class InfraError(GatewayException):
    """Base class for infrastructure errors."""
    pass


class TransportError(InfraError):
    """Connection failure or read failure talking to a backend."""

    def __init__(self, provider: str, message: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="transport_error",
                message=f"{provider}: {message}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
            ),
            status_code=502
        )


class StreamTimeoutError(InfraError):
    """The request deadline elapsed before the stream finished."""

    def __init__(self, provider: str, timeout: float, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="stream_timeout",
                message=f"{provider} did not finish streaming within {timeout:g}s",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                details={"timeout": timeout},
            ),
            status_code=504
        )


class UpstreamError(InfraError):
    """Backend answered with a non-2xx status."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        body: str = "",
        request_id: str = ""
    ):
        self.upstream_status = status_code
        self.body = body
        super().__init__(
            ErrorDetails(
                code=f"upstream_{status_code}",
                message=f"{provider} API returned {status_code}: {body[:500]}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                upstream_status=status_code,
                upstream_body=body[:2000] or None,
            ),
            status_code=status_code if 400 <= status_code < 500 else 502
        )


class StreamPayloadError(InfraError):
    """Backend sent an error frame or a payload that could not be decoded."""

    def __init__(self, provider: str, message: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="stream_error",
                message=f"{provider}: {message}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
            ),
            status_code=502
        )


class EmptyResponseError(InfraError):
    """Backend answered 2xx but without a readable body."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="no_response_body",
                message=f"{provider} returned no response body",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
            ),
            status_code=502
        )


# ============================================================
# Semantic Errors
# ============================================================

class SemanticError(GatewayException):
    """Base class for semantic errors (caller must fix the request)."""
    pass


class InvalidRequestError(SemanticError):
    """Request validation failed."""

    def __init__(
        self,
        message: str,
        param: str = "",
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="invalid_request",
                message=message,
                type=ErrorType.SEMANTIC,
                param=param or None,
                request_id=request_id,
            ),
            status_code=400
        )


class UnsupportedOperationError(SemanticError):
    """The backend does not implement the requested capability."""

    def __init__(self, provider: str, operation: str, request_id: str = ""):
        self.operation = operation
        super().__init__(
            ErrorDetails(
                code="unsupported_operation",
                message=f"{provider} does not support {operation}",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                details={"operation": operation},
            ),
            status_code=501
        )


class MissingCredentialError(SemanticError):
    """No credential is stored for the provider."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="missing_credential",
                message=f"No credential configured for {provider}",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
            ),
            status_code=401
        )


class UnknownProviderError(SemanticError):
    """No provider is registered under the given name."""

    def __init__(self, name: str):
        super().__init__(
            ErrorDetails(
                code="unknown_provider",
                message=f"Unsupported provider: {name}",
                type=ErrorType.SEMANTIC,
                param="provider",
                details={"requested_provider": name},
            ),
            status_code=404
        )


# ============================================================
# Error Mapping
# ============================================================

def handle_transport_error(
    error: BaseException,
    provider: str,
    request_id: str = ""
) -> GatewayException:
    """
    Map an exception raised while talking to a backend into the taxonomy.

    Already-classified errors pass through unchanged.
    """
    if isinstance(error, GatewayException):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = ""
        return UpstreamError(provider, response.status_code, body, request_id=request_id)

    if isinstance(error, httpx.TimeoutException):
        return TransportError(provider, f"timeout ({type(error).__name__})", request_id=request_id)

    if isinstance(error, httpx.ConnectError):
        return TransportError(provider, f"connection failed: {error}", request_id=request_id)

    if isinstance(error, httpx.HTTPError):
        return TransportError(provider, str(error) or type(error).__name__, request_id=request_id)

    if isinstance(error, asyncio.TimeoutError):
        return TransportError(provider, "timeout", request_id=request_id)

    return TransportError(provider, str(error) or type(error).__name__, request_id=request_id)
