"""
streamgate - Credential Resolution

Backends accept different credential shapes:
- Raw API keys, sent as bearer tokens
- Session tokens (JWTs, recognised by the `eyJ` prefix) that must be
  exchanged for a raw key first
- Cookie headers copied from a browser session

`CredentialResolver.resolve` never raises. Any exchange failure degrades to
the original credential, and the backend call that follows reports the real
problem as an upstream error.
"""

import json
from typing import Any, Dict, Optional
from urllib.parse import unquote

from ..core.http_client import ProviderHttpClient
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics


logger = get_logger("streamgate.auth")

SESSION_TOKEN_PREFIX = "eyJ"


def is_session_token(credential: Optional[str]) -> bool:
    """Check whether a credential is a session token that needs exchanging."""
    return bool(credential) and credential.strip().startswith(SESSION_TOKEN_PREFIX)


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Mask a secret for logging, keeping only a short prefix."""
    if not value:
        return ""
    if len(value) <= visible * 2:
        return "***"
    return f"{value[:visible]}...({len(value)} chars)"


def extract_cookie(cookie_header: Optional[str], name: str) -> Optional[str]:
    """Return the raw value of cookie `name` from a `Cookie` header."""
    if not cookie_header:
        return None
    for part in cookie_header.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep and key == name:
            return value
    return None


def cookie_json(cookie_header: Optional[str], name: str) -> Optional[Dict[str, Any]]:
    """Decode a URL-encoded JSON cookie value, or None if absent/malformed."""
    raw = extract_cookie(cookie_header, name)
    if not raw:
        return None
    try:
        value = json.loads(unquote(raw))
    except ValueError:
        logger.debug(f"Cookie {name} is not valid JSON")
        return None
    return value if isinstance(value, dict) else None


class CredentialResolver:
    """
    Exchanges session tokens for raw API keys.

    Raw keys pass through untouched, which makes resolution idempotent:
    issued keys carry no session-token marker, so resolving a result again
    returns it unchanged without a network call. Results are not cached.
    """

    def __init__(
        self,
        provider: str,
        http: ProviderHttpClient,
        exchange_url: str,
        key_field: str = "rawKey",
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ):
        self.provider = provider
        self.http = http
        self.exchange_url = exchange_url
        self.key_field = key_field
        self.headers = headers or {}
        self.body = body or {}

    async def resolve(self, credential: str, request_id: Optional[str] = None) -> str:
        """Return a usable key for `credential`. Never raises."""
        if not is_session_token(credential):
            return credential

        token = credential.strip()
        headers = {"Authorization": f"Bearer {token}", **self.headers}

        try:
            data = await self.http.request_json(
                "POST",
                self.exchange_url,
                "credential_exchange",
                json=self.body,
                headers=headers,
                request_id=request_id,
            )
        except Exception as e:
            logger.warning(
                f"Credential exchange failed, using original token: {e}",
                provider=self.provider,
                hint=mask_secret(token),
            )
            get_metrics().record_credential_exchange(self.provider, "failed")
            return credential

        key = data.get(self.key_field) if isinstance(data, dict) else None
        if not isinstance(key, str) or not key:
            logger.warning(
                f"Credential exchange response has no `{self.key_field}`, using original token",
                provider=self.provider,
            )
            get_metrics().record_credential_exchange(self.provider, "missing_field")
            return credential

        get_metrics().record_credential_exchange(self.provider, "exchanged")
        logger.info("Exchanged session token for API key", provider=self.provider)
        return key
