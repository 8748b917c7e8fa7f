"""Flask extension protecting routes with KMS access tokens.

Per request:
1. Extract the compact token (header or cookie)
2. Parse it and verify the signature (secret cache, then KMS)
3. Validate the claims for this service's audience and check that the
   refresh token it came from has not been revoked
4. Store the claims in `flask.g.jwt` and the token in `flask.g.access_token`
5. Optionally enforce the scopes the route requires
6. Convert token errors to HTTP responses (401/403/503)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, abort, g

from .access_token import AccessToken
from .checkers import DEFAULT_ISSUER
from .errors import TokenError
from .extractors import BearerExtractor

if TYPE_CHECKING:
    from .protocols import (
        Authorizer,
        CacheStore,
        Extractor,
        KeyService,
        RevocationStore,
        SignatureEngine,
        ViewFunc,
    )

logger = logging.getLogger(__name__)

_EXT_KEY: Final[str] = "kms_jwt"
"""Flask extensions registry key for AuthExtension."""


class AuthExtension:
    """
    Flask decorator glue for access token authentication.

    Responsibilities:
    - Extract the token from the request
    - Parse, verify and validate it as an AccessToken for ``audience``
    - Store verified claims in `flask.g.jwt`
    - Optionally authorize scopes (Authorizer)
    - Convert token errors to HTTP responses (abort)

    Usage:
        auth = AuthExtension(
            key_service,
            audience="profile.example.com",
            revocation_store=RedisCache(redis_client),
            secret_cache=RedisCache(redis_client),
            authorizer=ScopeAuthorizer(),
        )
        auth.init_app(app)

        @app.get("/me")
        @auth.require(scopes=["user-read"])
        def me(): ...
    """

    def __init__(
        self,
        key_service: KeyService,
        *,
        audience: str,
        revocation_store: RevocationStore,
        secret_cache: CacheStore | None = None,
        authorizer: Authorizer | None = None,
        extractor: Extractor | None = None,
        signature_engine: SignatureEngine | None = None,
        issuer: str = DEFAULT_ISSUER,
    ) -> None:
        self._key_service = key_service
        self._audience = audience
        self._revocations = revocation_store
        self._secret_cache = secret_cache
        self._authorizer = authorizer
        self._extractor: Extractor = extractor or BearerExtractor()
        self._engine = signature_engine
        self._issuer = issuer

    def init_app(
        self,
        app: Flask,
        *,
        authorizer: Authorizer | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        """Register the extension on a Flask app.

        Args:
            app: The Flask application instance.
            authorizer: Replaces the configured authorizer if given.
            extractor: Replaces the configured extractor if given.
        """
        if authorizer is not None:
            self._authorizer = authorizer
        if extractor is not None:
            self._extractor = extractor

        app.extensions[_EXT_KEY] = self

    def authenticate(self, raw_token: str) -> AccessToken:
        """Parse, verify and validate a compact access token.

        Raises:
            TokenError: Any parsing, signature, claim or revocation failure.
        """
        token = AccessToken(self._key_service, self._engine, issuer=self._issuer)
        token.parse_token_string(raw_token, self._secret_cache)
        token.validate(self._audience, self._revocations)
        return token

    def require(
        self,
        *,
        scopes: Sequence[str] = (),
        require_all_scopes: bool = True,
    ):
        """Decorator protecting a route with a valid access token.

        Error mapping:
        - ``MissingToken``     -> HTTP 401
        - ``KeyServiceError``  -> HTTP 503
        - ``Forbidden``        -> HTTP 403
        - other ``TokenError`` -> HTTP 401
        - any other error      -> HTTP 401 ("Authentication failed")

        Args:
            scopes: Scopes the token must grant for this service.
            require_all_scopes: All scopes (True) or any one (False).

        Side Effects:
            - Writes claims to ``flask.g.jwt`` and the token to
              ``flask.g.access_token`` before calling the view.
            - May end the request early via ``flask.abort``.
        """
        scopes_set = frozenset(scopes)

        def decorator(view: ViewFunc) -> ViewFunc:
            @wraps(view)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    token = self.authenticate(self._extractor.extract())

                    g.access_token = token
                    g.jwt = token.claims

                    if self._authorizer:
                        self._authorizer.authorize(
                            token.claims,
                            audience=self._audience,
                            scopes=scopes_set,
                            require_all_scopes=require_all_scopes,
                        )

                except TokenError as e:
                    logger.info("Rejected request: %s", type(e).__name__)
                    abort(e.error_code, description=e.description)
                except Exception:
                    logger.exception("Unexpected error while authenticating request")
                    abort(401, description="Authentication failed")

                return view(*args, **kwargs)

            return wrapper

        return decorator
