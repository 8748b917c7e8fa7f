"""Access token extraction from Flask requests.

Implementations of the Extractor protocol:
- BearerExtractor: `Authorization: Bearer <token>` header (services calling services)
- CookieExtractor: a named cookie (browser clients)

Never read tokens from query parameters; they end up in access logs.
"""

from __future__ import annotations

from flask import request

from .errors import MissingToken


class BearerExtractor:
    """Reads the compact token from `Authorization: Bearer <token>`.

    The scheme is matched case-insensitively; any other scheme or an empty
    token raises MissingToken.
    """

    def extract(self) -> str:
        auth_header = request.headers.get("Authorization", "").strip()
        if not auth_header:
            raise MissingToken("Missing Authorization header")

        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer":
            raise MissingToken("Invalid authorization scheme (expected 'Bearer')")

        token = token.strip()
        if not token:
            raise MissingToken("Bearer token is empty")
        return token


class CookieExtractor:
    """Reads the compact token from a cookie.

    The cookie should be set HttpOnly and Secure, and the app needs CSRF
    protection when it authenticates with cookies.

    Attributes:
        _name: Name of the cookie holding the token.
    """

    def __init__(self, cookie_name: str = "access_token") -> None:
        if not cookie_name or not cookie_name.strip():
            raise ValueError("cookie_name cannot be empty")
        self._name = cookie_name

    def extract(self) -> str:
        token = request.cookies.get(self._name)
        if not token:
            raise MissingToken(f"Missing cookie '{self._name}'")
        return token
