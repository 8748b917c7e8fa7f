"""Token errors.

This module defines the exception hierarchy raised while creating, parsing
and validating KMS-protected tokens. All errors inherit from TokenError so
callers can catch a single type.

Each error carries the HTTP status (``error_code``) and a generic
``description`` used by the Flask extension when it aborts a request.

Security Note:
    Descriptions are intentionally generic. The exception message may hold
    more detail for server-side diagnosis and should not be returned to clients.
"""

from __future__ import annotations

from typing import ClassVar


class TokenError(Exception):
    """Base exception for all token failures.

    Attributes:
        error_code: HTTP status the Flask extension responds with.
        description: Client-safe description of the failure.
    """

    error_code: ClassVar[int] = 401
    description: ClassVar[str] = "Invalid token"


class MalformedTokenError(TokenError):
    """Raised when a compact token string cannot be parsed.

    This occurs when:
    - The string does not have exactly three dot-delimited parts
    - A part is not valid base64url
    - The header or payload is not a JSON object
    """

    description = "Malformed token"


class MissingKeyHeaderError(TokenError):
    """Raised when the `aid`, `kid` or `kct` header needed to recover the
    signing secret is absent."""

    description = "Malformed token"


class KeyServiceError(TokenError):
    """Raised when a key service call (generate data key, decrypt) fails.

    Not retried here. Retry policy belongs to the key service client.
    """

    error_code = 503
    description = "Key service unavailable"


class InvalidSignatureError(TokenError):
    """Raised when the signature does not verify against the recovered secret."""

    description = "Invalid token signature"


class TokenExpiredError(TokenError):
    """Raised when a token can no longer be used.

    This occurs when:
    - The `exp` claim is not strictly after the current time
    - The refresh token the access token was issued from has been revoked
    """

    description = "Expired token"


class InvalidAudienceError(TokenError):
    """Raised when the expected audience is not listed in the `aud` claim."""


class InvalidSubjectError(TokenError):
    """Raised when the `sub` claim does not match the expected token kind."""


class InvalidIssuerError(TokenError):
    """Raised when the `iss` claim does not match the expected issuer."""


class CriticalClaimsVerificationError(TokenError):
    """Raised when the `crit` header names something that is not checked.

    This is a configuration bug and should only surface during development.
    """


class UnhandledVerificationError(TokenError):
    """Raised for a verification failure that fits no other category.

    Attributes:
        code: Diagnostic code taken from the underlying failure (0 if none).
    """

    def __init__(self, message: str, code: int = 0) -> None:
        super().__init__(message)
        self.code = code


class MissingToken(TokenError):  # noqa: N818
    """Raised when no token is found in the request.

    This occurs when:
    - The Authorization header is missing or is not "Bearer <token>"
    - The configured cookie is missing
    """

    description = "Missing token"


class Forbidden(TokenError):  # noqa: N818
    """Raised when a valid token lacks the scopes an endpoint requires.

    This is the only error that results in 403. All others are 401 or 503.
    """

    error_code = 403
    description = "Forbidden"
