"""Envelope encryption of per-token signing secrets.

Every token is signed with its own data key generated by the key service.
The data key's ciphertext travels with the token in the `kct` protected
header, next to the application id (`aid`) and a random cache id (`kid`).

Recovering the secret for verification:

1) Cache lookup (fast path)
    - Cache key is derived from `aid` and `kid` only, never from the
      ciphertext bytes.
    - A hit returns the plaintext without calling the key service.

2) Decrypt
    - The `kct` ciphertext is decrypted by the key service.
    - When a cache was supplied, the plaintext is cached until the token's
      own `exp`, so a cached secret never outlives its token.

Key service failures surface as KeyServiceError and are never retried here.
"""

from __future__ import annotations

import base64
import binascii
import math
import time
import uuid
from dataclasses import dataclass, field
from numbers import Real
from typing import TYPE_CHECKING, Any, Final

from .errors import KeyServiceError, MalformedTokenError, MissingKeyHeaderError

if TYPE_CHECKING:
    from .envelope import TokenEnvelope
    from .protocols import CacheStore, KeyService

KMS_KEY_SPEC: Final[str] = "AES_128"
"""Key spec requested from the key service for new data keys."""

APP_ID_HEADER: Final[str] = "aid"
"""Protected header holding the client application id."""

KEY_ID_HEADER: Final[str] = "kid"
"""Protected header holding the random cache id of the data key."""

KEY_CIPHERTEXT_HEADER: Final[str] = "kct"
"""Protected header holding the base64-encoded data key ciphertext."""


@dataclass(frozen=True, slots=True)
class DataKey:
    """A data key as returned by the key service.

    Attributes:
        plaintext: Secret signing key. Never serialized, excluded from repr.
        ciphertext: The plaintext wrapped under a master key.
    """

    plaintext: bytes = field(repr=False)
    ciphertext: bytes


def secret_cache_key(app_id: str, cache_id: str) -> str:
    """Return the secret cache key for a token's `aid` and `kid` headers."""
    return f"Jwt-Kms-{app_id}-{cache_id}"


def _required_header(envelope: TokenEnvelope, name: str) -> str:
    value = envelope.get_header(name)
    if not isinstance(value, str) or not value:
        raise MissingKeyHeaderError(f"Token header '{name}' is missing")
    return value


def _cache_ttl(exp: Any) -> int:
    if isinstance(exp, bool) or not isinstance(exp, Real) or not math.isfinite(exp):
        return 0
    return math.floor(exp) - int(time.time())


class EnvelopeKeyManager:
    """Creates data keys and recovers them from token headers.

    Example:
        ```python
        manager = EnvelopeKeyManager(AwsKmsKeyService(region_name="us-east-1"))

        data_key = manager.create_secret("alias/my-app")
        headers = manager.key_headers("app-123", data_key)

        # Later, for a parsed envelope:
        secret = manager.recover_secret(envelope, cache=InMemoryCache())
        ```
    """

    def __init__(self, key_service: KeyService) -> None:
        self._keys = key_service

    def create_secret(self, master_key_id: str) -> DataKey:
        """Generate a new data key under ``master_key_id``.

        Raises:
            KeyServiceError: If the key service call fails.
        """
        try:
            return self._keys.generate_data_key(KMS_KEY_SPEC, master_key_id)
        except KeyServiceError:
            raise
        except Exception as e:
            raise KeyServiceError(f"Data key generation failed: {e}") from e

    def key_headers(self, app_id: str, data_key: DataKey) -> dict[str, str]:
        """Return the protected headers that carry ``data_key``.

        A new cache id is minted on every call.
        """
        return {
            APP_ID_HEADER: app_id,
            KEY_ID_HEADER: str(uuid.uuid4()),
            KEY_CIPHERTEXT_HEADER: base64.b64encode(data_key.ciphertext).decode("ascii"),
        }

    def recover_secret(
        self,
        envelope: TokenEnvelope,
        cache: CacheStore | None = None,
    ) -> bytes:
        """Return the plaintext signing secret of a parsed envelope.

        Args:
            envelope: Parsed token envelope.
            cache: Optional secret cache. Without one the key service is
                called on every recovery.

        Raises:
            MissingKeyHeaderError: `aid`, `kid` or `kct` header is absent.
            MalformedTokenError: `kct` is not valid base64.
            KeyServiceError: The decrypt call failed.
        """
        key = secret_cache_key(
            _required_header(envelope, APP_ID_HEADER),
            _required_header(envelope, KEY_ID_HEADER),
        )

        if cache is not None:
            cached = cache.get(key)
            if cached is not None:
                try:
                    return base64.b64decode(cached, validate=True)
                except binascii.Error:
                    # Unreadable entry; decrypt again and overwrite it
                    pass

        plaintext = self._decrypt(_required_header(envelope, KEY_CIPHERTEXT_HEADER))

        if cache is not None:
            ttl = _cache_ttl(envelope.get_claim("exp"))
            if ttl > 0:
                cache.set(key, base64.b64encode(plaintext).decode("ascii"), ttl)

        return plaintext

    def _decrypt(self, encoded_ciphertext: str) -> bytes:
        try:
            ciphertext = base64.b64decode(encoded_ciphertext, validate=True)
        except binascii.Error as e:
            raise MalformedTokenError("Token header 'kct' is not valid base64") from e

        try:
            return self._keys.decrypt(ciphertext)
        except KeyServiceError:
            raise
        except Exception as e:
            raise KeyServiceError(f"Data key decryption failed: {e}") from e
