"""Claim verification.

The checks run in a fixed order and stop at the first failure:

1. `crit` header   -> CriticalClaimsVerificationError
2. `iss` claim     -> InvalidIssuerError
3. `exp` claim     -> TokenExpiredError
4. `aud` claim     -> InvalidAudienceError
5. `sub` claim     -> InvalidSubjectError

Each claim check is a plain predicate over the claim set. Anything else that
goes wrong while checking is reported as UnhandledVerificationError so it
stays visible.
"""

from __future__ import annotations

import time
from numbers import Real
from typing import TYPE_CHECKING, Any, Final

from .errors import (
    CriticalClaimsVerificationError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSubjectError,
    TokenError,
    TokenExpiredError,
    UnhandledVerificationError,
)

if TYPE_CHECKING:
    from .envelope import TokenEnvelope
    from .protocols import Claims, Headers

DEFAULT_ISSUER: Final[str] = "id.serato.io"
"""Value of the `iss` claim in every token this package issues."""

CHECKED_CLAIMS: Final[frozenset[str]] = frozenset({"iss", "aud", "sub", "exp"})
"""Names that may appear in `crit`: the claims verify_claims() checks."""

DEFAULT_CRIT: Final[tuple[str, ...]] = ("iss", "aud", "sub", "exp")
"""`crit` header written into new tokens."""


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def issuer_equals(claims: Claims, issuer: str) -> bool:
    return claims.get("iss") == issuer


def expires_after(claims: Claims, now: float) -> bool:
    """True if `exp` is a timestamp strictly after ``now``."""
    exp = claims.get("exp")
    return _is_timestamp(exp) and exp > now


def audience_contains(claims: Claims, audience: str) -> bool:
    """True if ``audience`` is listed in `aud` (or equals a string `aud`)."""
    aud = claims.get("aud")
    if isinstance(aud, str):
        return aud == audience
    if isinstance(aud, list):
        return audience in aud
    return False


def subject_equals(claims: Claims, subject: str) -> bool:
    return claims.get("sub") == subject


def check_critical(headers: Headers, claims: Claims) -> None:
    """Every name in `crit` must be a checked claim present in the payload.

    Raises:
        CriticalClaimsVerificationError: `crit` is missing, not a list of
            strings, or names something that is not checked.
    """
    crit = headers.get("crit")
    if not isinstance(crit, list):
        raise CriticalClaimsVerificationError("Header 'crit' must be a list of claim names")

    for name in crit:
        if not isinstance(name, str) or name not in CHECKED_CLAIMS:
            raise CriticalClaimsVerificationError(
                f"Header {name!r} marked as critical is not checked"
            )
        if name not in claims:
            raise CriticalClaimsVerificationError(
                f"Claim {name!r} marked as critical is missing"
            )


def verify_claims(
    envelope: TokenEnvelope,
    *,
    audience: str,
    subject: str,
    issuer: str = DEFAULT_ISSUER,
) -> None:
    """Run the claim checks against a parsed envelope.

    Args:
        envelope: Envelope whose signature has already been verified.
        audience: The validating service; must be listed in `aud`.
        subject: Expected `sub` (the token kind).
        issuer: Expected `iss`.

    Raises:
        CriticalClaimsVerificationError, InvalidIssuerError, TokenExpiredError,
        InvalidAudienceError, InvalidSubjectError: First failed check.
        UnhandledVerificationError: Any other failure while checking.
    """
    claims = envelope.claims
    try:
        check_critical(envelope.headers, claims)
        if not issuer_equals(claims, issuer):
            raise InvalidIssuerError("Invalid issuer")
        if not expires_after(claims, time.time()):
            raise TokenExpiredError("Token has expired")
        if not audience_contains(claims, audience):
            raise InvalidAudienceError("Invalid audience")
        if not subject_equals(claims, subject):
            raise InvalidSubjectError("Invalid subject")
    except TokenError:
        raise
    except Exception as e:
        code = getattr(e, "code", 0)
        raise UnhandledVerificationError(
            str(e) or type(e).__name__,
            code if isinstance(code, int) else 0,
        ) from e
