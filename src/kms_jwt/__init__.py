"""
KMS-protected JWS tokens.

Each token is signed (HS512) with its own data key from a key management
service. The data key's ciphertext travels in the token's protected headers,
so any service with access to the key service can verify the token.

Creating a token
----------------
1. `EnvelopeKeyManager.create_secret()` asks the KeyService for a data key.
2. Headers `alg`, `crit`, `aid` (app id), `kid` (random cache id) and
   `kct` (ciphertext) are built.
3. The SignatureEngine signs `header.payload` with the plaintext data key.

Validating a token
------------------
1. `TokenEnvelope.parse()` splits and decodes the compact string.
2. `EnvelopeKeyManager.recover_secret()` reads the plaintext from the secret
   cache, or decrypts `kct` with the KeyService and caches it until `exp`.
3. The SignatureEngine verifies the signature.
4. `verify_claims()` checks `crit`, `iss`, `exp`, `aud` and `sub`, in order.
5. `AccessToken.validate()` also rejects tokens whose refresh token (`rtid`)
   was revoked.

Example usage
-------------

.. code-block:: python

    import redis

    from kms_jwt import AccessToken, AwsKmsKeyService, RedisCache, revoke_refresh_token

    key_service = AwsKmsKeyService(region_name="us-east-1")
    cache = RedisCache(redis.Redis.from_url("redis://localhost:6379/0"))

    # Identity service
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

    # Profile service
    received = AccessToken(key_service).parse_token_string(raw, cache)
    received.validate("profile.example.com", cache)

    # Logging the user out everywhere
    revoke_refresh_token(cache, "rt-abc", ttl_seconds=30 * 24 * 3600)
"""

# Tokens
from .access_token import ACCESS_SUBJECT, AccessToken

# Authorization
from .authorization import ScopeAccess, ScopeAuthorizer

# Cache stores
from .cache_stores import InMemoryCache, RedisCache

# Claim checks
from .checkers import (
    CHECKED_CLAIMS,
    DEFAULT_ISSUER,
    audience_contains,
    expires_after,
    issuer_equals,
    subject_equals,
    verify_claims,
)

# Configuration
from .config import Settings, load_settings

# Envelope
from .envelope import ABSENT, TokenEnvelope

# Errors
from .errors import (
    CriticalClaimsVerificationError,
    Forbidden,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidSubjectError,
    KeyServiceError,
    MalformedTokenError,
    MissingKeyHeaderError,
    MissingToken,
    TokenError,
    TokenExpiredError,
    UnhandledVerificationError,
)

# Extractors
from .extractors import BearerExtractor, CookieExtractor

# Flask extension
from .flask_extension import AuthExtension

# Key management
from .key_manager import KMS_KEY_SPEC, DataKey, EnvelopeKeyManager, secret_cache_key
from .key_services import AwsKmsKeyService
from .kms_token import KmsToken

# Protocols
from .protocols import (
    Authorizer,
    CacheStore,
    Claims,
    Extractor,
    Headers,
    KeyService,
    RevocationStore,
    SignatureEngine,
    ViewFunc,
)

# Revocation
from .revocation import (
    get_revoked_refresh_token,
    is_refresh_token_revoked,
    revocation_cache_key,
    revoke_refresh_token,
)

# Signing
from .signature import SIGNER_ALG, HmacSignatureEngine

__all__ = [
    # Errors
    "TokenError",
    "MalformedTokenError",
    "MissingKeyHeaderError",
    "KeyServiceError",
    "InvalidSignatureError",
    "TokenExpiredError",
    "InvalidAudienceError",
    "InvalidSubjectError",
    "InvalidIssuerError",
    "CriticalClaimsVerificationError",
    "UnhandledVerificationError",
    "MissingToken",
    "Forbidden",
    # Protocols
    "Authorizer",
    "CacheStore",
    "Claims",
    "Extractor",
    "Headers",
    "KeyService",
    "RevocationStore",
    "SignatureEngine",
    "ViewFunc",
    # Envelope
    "ABSENT",
    "TokenEnvelope",
    # Signing
    "SIGNER_ALG",
    "HmacSignatureEngine",
    # Key management
    "KMS_KEY_SPEC",
    "DataKey",
    "EnvelopeKeyManager",
    "secret_cache_key",
    "AwsKmsKeyService",
    # Claim checks
    "CHECKED_CLAIMS",
    "DEFAULT_ISSUER",
    "audience_contains",
    "expires_after",
    "issuer_equals",
    "subject_equals",
    "verify_claims",
    # Tokens
    "ACCESS_SUBJECT",
    "AccessToken",
    "KmsToken",
    # Revocation
    "get_revoked_refresh_token",
    "is_refresh_token_revoked",
    "revocation_cache_key",
    "revoke_refresh_token",
    # Cache stores
    "InMemoryCache",
    "RedisCache",
    # Authorization
    "ScopeAccess",
    "ScopeAuthorizer",
    # Extractors
    "BearerExtractor",
    "CookieExtractor",
    # Flask extension
    "AuthExtension",
    # Configuration
    "Settings",
    "load_settings",
]
