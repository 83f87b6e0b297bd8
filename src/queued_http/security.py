"""Authorization and base URL helpers."""

from __future__ import annotations

import base64
from typing import Mapping
from urllib.parse import urlparse

from .exceptions import InvalidArgumentError


SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "x-api-key",
}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def validate_base_url(url: str | None) -> str:
    """Validate a base URL and return it unchanged.

    The URL must be non-empty, use the ``http`` or ``https`` scheme and name a host.
    """
    if not url:
        raise InvalidArgumentError("base_url must not be empty")
    if "\x00" in url:
        raise InvalidArgumentError("Invalid base_url")
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise InvalidArgumentError("base_url must include scheme and host")
    if parsed.scheme not in {"http", "https"}:
        raise InvalidArgumentError(f"Unsupported base_url scheme: {parsed.scheme}")
    return url


def basic_auth_value(username: str, password: str, *, encoding: str = "utf-8") -> str:
    """Build a ``Basic`` Authorization value from ``username:password``."""
    try:
        credentials = f"{username}:{password}".encode(encoding)
    except UnicodeEncodeError as exc:
        raise InvalidArgumentError(f"Cannot encode credentials as {encoding}", cause=exc) from exc
    return "Basic " + base64.b64encode(credentials).decode("ascii")


def token_auth_value(token: str) -> str:
    return f'Token token="{token}"'


def bearer_auth_value(token: str) -> str:
    return f"Bearer {token}"
