"""
streamgate - Application Factory

Builds a FastAPI app around a provider registry. The host application
supplies the account lookup; streamgate never stores credentials.

Usage:
    from streamgate.server import create_app

    def lookup(request, provider):
        return my_vault.get(request.headers.get("X-Account"), provider)

    app = create_app(lookup)
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request

from . import __version__
from .api.routes import AccountLookup, error_response, register_provider_routes
from .core.config import GatewaySettings, get_settings
from .core.errors import ErrorDetails, ErrorType, GatewayException
from .observability import get_logger, metrics_endpoint, setup_logging, setup_tracing
from .providers import ProviderRegistry


logger = get_logger("streamgate.server")


def create_app(
    account_lookup: AccountLookup,
    registry: Optional[ProviderRegistry] = None,
    settings: Optional[GatewaySettings] = None,
    prefix: str = "",
) -> FastAPI:
    """
    Create the gateway app.

    Args:
        account_lookup: Returns the credential for `(request, provider)`
        registry: Providers to expose; built from settings when omitted
        settings: Gateway settings; read from the environment when omitted
        prefix: Path prefix for the provider routes
    """
    settings = settings or get_settings()
    registry = registry or ProviderRegistry(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(level=settings.log_level, json_output=settings.log_format == "json")
        setup_tracing(service_name="streamgate", service_version=__version__)
        logger.info("streamgate starting", providers=registry.names())
        yield
        await registry.close()
        logger.info("streamgate stopped")

    app = FastAPI(title="streamgate", version=__version__, lifespan=lifespan)
    app.state.registry = registry

    router = APIRouter(prefix=prefix)
    register_provider_routes(router, registry, account_lookup)
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": __version__, "providers": registry.names()}

    @app.get("/metrics")
    async def prometheus_metrics():
        return metrics_endpoint()

    @app.exception_handler(GatewayException)
    async def gateway_exception_handler(request: Request, exc: GatewayException):
        return error_response(exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Unexpected failures still answer with the canonical error body."""
        logger.exception(f"Unhandled error on {request.url.path}: {type(exc).__name__}")
        return error_response(GatewayException(
            ErrorDetails(
                code="internal_error",
                message="An unexpected error occurred",
                type=ErrorType.INFRA,
            ),
            status_code=500,
        ))

    return app
