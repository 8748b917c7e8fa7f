"""Access tokens.

An access token lets a client application call the web services listed in
its `aud` claim on behalf of a user. It records the refresh token it was
issued from (`rtid`) so revoking the refresh token also ends the access
token, before its own `exp`.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Final

from .envelope import ABSENT
from .errors import MalformedTokenError, TokenExpiredError
from .kms_token import KmsToken
from .revocation import is_refresh_token_revoked

if TYPE_CHECKING:
    from .protocols import CacheStore, RevocationStore

ACCESS_SUBJECT: Final[str] = "access"
"""Value of the `sub` claim of every access token."""


class AccessToken(KmsToken):
    """A KMS-protected `access` token.

    Claims:
        Reserved: iss, aud, sub ("access"), iat, exp
        Custom: app_id, app_name, uid, email, email_verified, scopes, rtid

    Example:
        ```python
        token = AccessToken(key_service).create(
            app_id="app-123",
            app_name="My App",
            expiry_seconds=900,
            audience=["profile.example.com"],
            kms_master_key_id="alias/my-app",
            user_id=42,
            user_email="user@example.com",
            email_verified=True,
            scopes={"profile.example.com": ["profile-edit"]},
            refresh_token_id="rt-abc",
        )
        raw = str(token)

        # In the profile service:
        received = AccessToken(key_service).parse_token_string(raw, cache)
        received.validate("profile.example.com", revocation_store)
        ```
    """

    SIGNING_KEY_ID = "JWS_ACCESS_COMPACT_HS512"

    def create(
        self,
        app_id: str,
        app_name: str,
        expiry_seconds: int,
        audience: Sequence[str],
        kms_master_key_id: str,
        user_id: int,
        user_email: str,
        email_verified: bool,
        scopes: Sequence[str] | Mapping[str, Sequence[str]],
        refresh_token_id: str,
    ) -> AccessToken:
        """Create and sign an access token issued now.

        Args:
            app_id: Client application id (also the `aid` header).
            app_name: Client application name.
            expiry_seconds: Lifetime of the token.
            audience: Web services that may consume the token.
            kms_master_key_id: Master key the data key is generated under.
            user_id: User id.
            user_email: User email address.
            email_verified: Whether the user has verified their email.
            scopes: Scopes of access, either a list or a mapping of
                service to list.
            refresh_token_id: Id of the refresh token this token comes from.

        Raises:
            KeyServiceError: If the data key cannot be generated.
        """
        return self.create_with_issued_at(
            int(time.time()),
            app_id,
            app_name,
            expiry_seconds,
            audience,
            kms_master_key_id,
            user_id,
            user_email,
            email_verified,
            scopes,
            refresh_token_id,
        )

    def create_with_issued_at(
        self,
        issued_at: int,
        app_id: str,
        app_name: str,
        expiry_seconds: int,
        audience: Sequence[str],
        kms_master_key_id: str,
        user_id: int,
        user_email: str,
        email_verified: bool,
        scopes: Sequence[str] | Mapping[str, Sequence[str]],
        refresh_token_id: str,
    ) -> AccessToken:
        """Same as create() with an explicit `iat`. For tests only."""
        scopes_claim: Any = (
            {k: list(v) for k, v in scopes.items()}
            if isinstance(scopes, Mapping)
            else list(scopes)
        )
        self._create_with_kms(
            kms_master_key_id=kms_master_key_id,
            app_id=app_id,
            audience=audience,
            subject=ACCESS_SUBJECT,
            issued_at=issued_at,
            expires_at=issued_at + expiry_seconds,
            custom_claims={
                "app_id": app_id,
                "app_name": app_name,
                "uid": user_id,
                "email": user_email,
                "email_verified": email_verified,
                "scopes": scopes_claim,
                "rtid": refresh_token_id,
            },
        )
        return self

    def parse_token_string(
        self,
        token: str,
        cache: CacheStore | None = None,
    ) -> AccessToken:
        """Parse a compact token string and verify its signature.

        Args:
            token: Compact token string.
            cache: Optional secret cache to skip key service round trips.

        Raises:
            MalformedTokenError: Not three base64url parts of JSON objects.
            MissingKeyHeaderError: `aid`, `kid` or `kct` header missing.
            KeyServiceError: The data key cannot be decrypted.
            InvalidSignatureError: The signature does not verify.
        """
        self._parse_with_kms(token, cache)
        return self

    def validate(self, audience: str, revocation_store: RevocationStore) -> None:
        """Check the claims and the revocation status of the refresh token.

        Args:
            audience: The validating web service; must be listed in `aud`.
            revocation_store: Store holding revoked refresh token ids.

        Raises:
            TokenExpiredError: `exp` has passed or the refresh token was revoked.
            InvalidAudienceError, InvalidSubjectError, InvalidIssuerError,
            CriticalClaimsVerificationError, UnhandledVerificationError:
                From the claim checks.
        """
        self._check_claims(audience, ACCESS_SUBJECT)

        # Older tokens have no `rtid`
        rtid = self.get_claim("rtid")
        if rtid is ABSENT or rtid is None:
            return
        if not isinstance(rtid, str):
            raise MalformedTokenError("Claim 'rtid' must be a string")
        if is_refresh_token_revoked(revocation_store, rtid):
            raise TokenExpiredError("Refresh token has been revoked")
