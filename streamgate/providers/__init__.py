"""
streamgate - Providers Module

Closed registry of chat backends. A provider is selected by matching its
`ProviderName`, never by probing objects for capabilities.
"""

from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Type, Union

import httpx

from .base import BaseProvider, Capability, ProviderConfig
from .cerebras import CerebrasProvider
from .cohere import CohereProvider
from .groq import GroqProvider
from .huggingchat import HuggingChatProvider
from .lmarena import LMArenaProvider
from .mistral import MistralProvider
from ..core.config import GatewaySettings, get_settings
from ..core.errors import UnknownProviderError
from ..observability.logging import get_logger
from ..routing.queue import RequestQueue


logger = get_logger("streamgate.providers")


class ProviderName(str, Enum):
    """Supported backends."""
    CEREBRAS = "cerebras"
    COHERE = "cohere"
    GROQ = "groq"
    MISTRAL = "mistral"
    HUGGINGCHAT = "huggingchat"
    LMARENA = "lmarena"

    @classmethod
    def parse(cls, name: Union[str, "ProviderName"]) -> "ProviderName":
        """
        Raises:
            UnknownProviderError: If no backend has that name
        """
        if isinstance(name, ProviderName):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise UnknownProviderError(str(name))


PROVIDER_CLASSES: Dict[ProviderName, Type[BaseProvider]] = {
    ProviderName.CEREBRAS: CerebrasProvider,
    ProviderName.COHERE: CohereProvider,
    ProviderName.GROQ: GroqProvider,
    ProviderName.MISTRAL: MistralProvider,
    ProviderName.HUGGINGCHAT: HuggingChatProvider,
    ProviderName.LMARENA: LMArenaProvider,
}


def get_provider(
    name: Union[str, ProviderName],
    config: Optional[ProviderConfig] = None,
    queue: Optional[RequestQueue] = None,
) -> BaseProvider:
    """
    Factory function to build a single provider.

    Args:
        name: Provider name ("cohere", "mistral", ...)
        config: Provider configuration
        queue: Queue to dispatch through; a private one is created if omitted

    Raises:
        UnknownProviderError: If the provider is not supported
    """
    provider_class = PROVIDER_CLASSES[ProviderName.parse(name)]
    return provider_class(config, queue)


class ProviderRegistry:
    """
    Provider instances wired to shared per-host request queues.

    Providers whose base URLs resolve to the same host share one queue, so
    the rate limit applies per upstream host. Queues live on the registry
    instance, never at module level.
    """

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        names: Optional[Iterable[Union[str, ProviderName]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._queues: Dict[str, RequestQueue] = {}
        self._providers: Dict[ProviderName, BaseProvider] = {}

        for name in (names if names is not None else ProviderName):
            provider_name = ProviderName.parse(name)
            self._providers[provider_name] = self._build(provider_name)

    def _build(self, name: ProviderName) -> BaseProvider:
        provider_class = PROVIDER_CLASSES[name]
        config = ProviderConfig(
            base_url=self.settings.base_url_for(name.value),
            timeout=self.settings.http_timeout,
            user_agent=self.settings.user_agent,
            stream_timeout=self.settings.stream_timeout,
            transport=self._transport,
        )
        host = httpx.URL(config.base_url or provider_class.BASE_URL).host or name.value
        provider = provider_class(config, self.queue_for(host))
        logger.info(f"Registered provider: {name.value}", provider=name.value, queue=host)
        return provider

    def queue_for(self, host: str) -> RequestQueue:
        """Get or create the queue for an upstream host."""
        queue = self._queues.get(host)
        if queue is None:
            queue = RequestQueue(name=host, min_interval=self.settings.queue_min_interval)
            self._queues[host] = queue
        return queue

    def get(self, name: Union[str, ProviderName]) -> BaseProvider:
        """
        Raises:
            UnknownProviderError: If the provider is unknown or not registered
        """
        provider_name = ProviderName.parse(name)
        provider = self._providers.get(provider_name)
        if provider is None:
            raise UnknownProviderError(provider_name.value)
        return provider

    def names(self) -> List[str]:
        return [name.value for name in self._providers]

    def providers(self) -> List[BaseProvider]:
        return list(self._providers.values())

    def provider_for_model(self, model_id: str) -> Optional[BaseProvider]:
        """
        Provider that should serve `model_id`.

        A sending provider whose catalog lists the exact id wins. Otherwise the
        first provider, in registration order, whose allow-list matches.
        """
        for provider in self._providers.values():
            if provider.supports(Capability.SEND_MESSAGE) and any(
                model.id == model_id for model in provider.FALLBACK_MODELS
            ):
                return provider
        for provider in self._providers.values():
            if provider.MODEL_PATTERNS and provider.is_model_supported(model_id):
                return provider
        return None

    def __iter__(self) -> Iterator[BaseProvider]:
        return iter(self._providers.values())

    def __contains__(self, name: object) -> bool:
        try:
            return ProviderName.parse(name) in self._providers  # type: ignore[arg-type]
        except UnknownProviderError:
            return False

    async def close(self):
        for provider in self._providers.values():
            await provider.close()


__all__ = [
    "BaseProvider",
    "Capability",
    "ProviderConfig",
    "ProviderName",
    "ProviderRegistry",
    "PROVIDER_CLASSES",
    "get_provider",
    "CerebrasProvider",
    "CohereProvider",
    "GroqProvider",
    "HuggingChatProvider",
    "LMArenaProvider",
    "MistralProvider",
]
