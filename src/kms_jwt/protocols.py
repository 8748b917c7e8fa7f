"""Protocol definitions for the KMS token package.

This module defines structural interfaces using Protocol (PEP 544) for the
collaborators the token core depends on but does not implement:
- Signature engine (symmetric signing and verification)
- Key service (KMS data key generation and decryption)
- Cache stores (secret cache and revocation cache)
- Authorization and token extraction for the Flask extension

Any class that implements the required methods satisfies the protocol, which
keeps tests free of mocking frameworks.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

if TYPE_CHECKING:
    from .key_manager import DataKey

# ============================================================================
# Type Aliases
# ============================================================================

Claims: TypeAlias = Mapping[str, Any]
"""Decoded token payload as an immutable mapping."""

Headers: TypeAlias = Mapping[str, Any]
"""Decoded protected headers as an immutable mapping."""

ViewFunc: TypeAlias = Callable[..., Any]
"""Type alias for Flask view functions."""


# ============================================================================
# Core Protocols
# ============================================================================


class SignatureEngine(Protocol):
    """Signs and verifies a token's signing input with a symmetric secret."""

    def sign(
        self,
        signing_input: bytes,
        secret: bytes,
        alg: str,
        *,
        key_id: str | None = None,
    ) -> bytes:
        """Return the signature of ``signing_input``.

        Raises:
            ValueError: If ``alg`` is not supported by the engine.
        """
        ...

    def verify(
        self,
        signing_input: bytes,
        signature: bytes,
        secret: bytes,
        alg: str,
        *,
        key_id: str | None = None,
    ) -> bool:
        """Return True if ``signature`` is valid for ``signing_input``.

        Unsupported algorithms verify as False.
        """
        ...


class KeyService(Protocol):
    """Key management service holding the master keys.

    Implementations raise KeyServiceError on failure. They are not expected
    to retry on behalf of the token core.
    """

    def generate_data_key(self, key_spec: str, master_key_id: str) -> DataKey:
        """Generate a fresh data key wrapped under ``master_key_id``.

        Args:
            key_spec: Key specification, e.g. "AES_128".
            master_key_id: Identifier of the master key in the key service.

        Returns:
            DataKey holding both the plaintext and the ciphertext.
        """
        ...

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Return the plaintext of a data key ciphertext."""
        ...


class CacheStore(Protocol):
    """Keyed string store with per-item expiry.

    Used as the secret cache, where values are base64-encoded plaintext
    data keys that must not outlive their token.
    """

    def get(self, key: str) -> str | None:
        """Return the cached value, or None on a miss or expired entry."""
        ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds`` (last write wins)."""
        ...


class RevocationStore(CacheStore, Protocol):
    """CacheStore with an atomic "set if absent" write.

    Used as the revocation cache. Implementations must make set_if_absent
    atomic across all processes sharing the store.
    """

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store ``value`` unless ``key`` already exists.

        Returns:
            True if the value was written, False if the key already existed.
        """
        ...


# ============================================================================
# Flask extension protocols
# ============================================================================


class Authorizer(Protocol):
    """Checks that validated claims grant the scopes an endpoint requires."""

    def authorize(
        self,
        claims: Claims,
        *,
        audience: str,
        scopes: frozenset[str],
        require_all_scopes: bool,
    ) -> None:
        """Raise Forbidden if the claims do not satisfy the requirements.

        Implementations must fail closed when scopes are missing or malformed.
        """
        ...


class Extractor(Protocol):
    """Pulls the raw compact token out of the current Flask request."""

    def extract(self) -> str:
        """Return the raw token string.

        Raises:
            MissingToken: Token not found or improperly formatted.
        """
        ...
