"""
streamgate - Auth Module

Credential handling for backend calls: session-token exchange and cookie
parsing.
"""

from .credentials import (
    SESSION_TOKEN_PREFIX,
    CredentialResolver,
    cookie_json,
    extract_cookie,
    is_session_token,
    mask_secret,
)

__all__ = [
    "SESSION_TOKEN_PREFIX",
    "CredentialResolver",
    "cookie_json",
    "extract_cookie",
    "is_session_token",
    "mask_secret",
]
