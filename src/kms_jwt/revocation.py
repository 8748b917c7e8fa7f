"""Refresh token revocation records.

Revoking a refresh token writes its id into a shared RevocationStore with a
TTL. Any access token whose `rtid` claim names a revoked refresh token is
treated as expired.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from .protocols import RevocationStore

_KEY_PREFIX: Final[str] = "r-"


def revocation_cache_key(refresh_token_id: str) -> str:
    return _KEY_PREFIX + refresh_token_id


def revoke_refresh_token(
    store: RevocationStore,
    refresh_token_id: str,
    ttl_seconds: int,
) -> bool:
    """Mark a refresh token as revoked.

    The write is set-if-absent, so revoking twice is harmless.

    Args:
        store: Shared revocation store.
        refresh_token_id: Id of the refresh token to revoke.
        ttl_seconds: How long to keep the record. Should cover the lifetime
            of any access token issued from the refresh token.

    Returns:
        True if the record was written, False if it already existed.
    """
    if ttl_seconds <= 0:
        raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
    return store.set_if_absent(
        revocation_cache_key(refresh_token_id), refresh_token_id, ttl_seconds
    )


def get_revoked_refresh_token(
    store: RevocationStore,
    refresh_token_id: str,
) -> str | None:
    """Return the stored revocation record, or None if there is none."""
    return store.get(revocation_cache_key(refresh_token_id))


def is_refresh_token_revoked(store: RevocationStore, refresh_token_id: str) -> bool:
    """True if a record holding exactly ``refresh_token_id`` exists.

    Store errors propagate; they are never read as "not revoked".
    """
    return get_revoked_refresh_token(store, refresh_token_id) == refresh_token_id
