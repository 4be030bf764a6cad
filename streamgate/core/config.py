"""
streamgate - Configuration

Environment-driven settings for the gateway.

Variables:
    QUEUE_MIN_INTERVAL_MS   Minimum spacing between dispatches on one queue (default 250)
    PROVIDER_HTTP_TIMEOUT   Per-request HTTP timeout in seconds (default 60)
    STREAM_TIMEOUT          Overall streaming deadline in seconds (unset: none)
    PROVIDER_USER_AGENT     User-Agent for API-style backends
    LOG_LEVEL / LOG_FORMAT  Logging configuration (see observability.logging)
    <PROVIDER>_BASE_URL     Base URL override, e.g. COHERE_BASE_URL
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional


DEFAULT_QUEUE_MIN_INTERVAL_MS = 250
DEFAULT_HTTP_TIMEOUT = 60.0
DEFAULT_USER_AGENT = "Elara/1.0.0"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36"
)


def _parse_float(env: Mapping[str, str], key: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got `{raw}`")
    if value < 0:
        raise ValueError(f"{key} must not be negative, got `{raw}`")
    return value


@dataclass
class GatewaySettings:
    """Resolved gateway settings."""
    queue_min_interval: float = DEFAULT_QUEUE_MIN_INTERVAL_MS / 1000
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    stream_timeout: Optional[float] = None
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"
    log_format: str = "json"
    base_urls: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GatewaySettings":
        """
        Build settings from environment variables.

        Raises:
            ValueError: If a numeric variable is malformed or negative, or the
                HTTP timeout is zero
        """
        env = os.environ if env is None else env

        interval_ms = _parse_float(env, "QUEUE_MIN_INTERVAL_MS", DEFAULT_QUEUE_MIN_INTERVAL_MS)
        http_timeout = _parse_float(env, "PROVIDER_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)
        if http_timeout == 0:
            raise ValueError("PROVIDER_HTTP_TIMEOUT must be positive, got `0`")
        stream_timeout = _parse_float(env, "STREAM_TIMEOUT", None)
        if stream_timeout == 0:
            stream_timeout = None

        base_urls = {}
        for key, value in env.items():
            if key.endswith("_BASE_URL") and value.strip():
                base_urls[key[: -len("_BASE_URL")].lower()] = value.strip().rstrip("/")

        return cls(
            queue_min_interval=interval_ms / 1000,
            http_timeout=http_timeout,
            stream_timeout=stream_timeout,
            user_agent=env.get("PROVIDER_USER_AGENT", "").strip() or DEFAULT_USER_AGENT,
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_format=env.get("LOG_FORMAT", "json").strip().lower() or "json",
            base_urls=base_urls,
        )

    def base_url_for(self, provider: str) -> Optional[str]:
        return self.base_urls.get(provider.lower())


_settings: Optional[GatewaySettings] = None


def get_settings() -> GatewaySettings:
    """Get process-wide settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = GatewaySettings.from_env()
    return _settings
