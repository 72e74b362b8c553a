from __future__ import annotations

from typing import Mapping

from ..errors import AuthenticationError

BEARER_PREFIX = "bearer "


def get_authorization_header(headers: Mapping[str, str] | None) -> str | None:
    """Return the ``Authorization`` header value, or ``None`` when absent."""
    if headers is None:
        return None
    return headers.get("authorization") or headers.get("Authorization")


def parse_bearer_token(header_value: str | None) -> str:
    """
    Extract the token from a ``Bearer <token>`` header value.

    The scheme is matched case-insensitively. Raw tokens without the scheme
    are rejected.

    Raises:
        ValueError: When the header is missing, uses another scheme or has no token.
    """
    if not header_value:
        raise ValueError("Authorization header missing")

    raw = header_value.strip()
    if not raw.lower().startswith(BEARER_PREFIX):
        raise ValueError("Authorization header must use the Bearer scheme")

    token = raw[len(BEARER_PREFIX):].strip()
    if not token:
        raise ValueError("Authorization token missing")
    return token


def extract_bearer_token(headers: Mapping[str, str] | None) -> str:
    """Like ``parse_bearer_token`` but raises ``AuthenticationError`` (401)."""
    try:
        return parse_bearer_token(get_authorization_header(headers))
    except ValueError as exc:
        raise AuthenticationError("Missing or invalid authorization header") from exc


def redact_token(token: str | None) -> str:
    """Short, log-safe fingerprint of a token."""
    if not token:
        return "<none>"
    return f"{token[:6]}..." if len(token) > 10 else "***"
