"""Cache store implementations.

This module provides implementations of the RevocationStore protocol (and
therefore CacheStore), used both as the secret cache and as the revocation
cache.

Implementations:
- InMemoryCache: In-process dict with TTLs (good for dev/single-instance)
- RedisCache: Distributed cache via Redis (good for multi-instance production)

Security Note:
    The secret cache holds plaintext signing secrets. Use a store that is
    only reachable by the services that verify tokens, and never share it
    with untrusted tenants. Revocation records must live in a store shared
    by every verifying service, so InMemoryCache is only suitable for tests
    and single-process deployments.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class _CacheItem:
    """Internal cache entry with TTL tracking.

    Attributes:
        value: Cached string value.
        expires_at: Unix timestamp when this entry should be considered expired.
    """

    value: str
    expires_at: float


class InMemoryCache:
    """In-process cache with per-item expiry.

    Expired entries are removed lazily on access. All operations take an
    internal lock, so set_if_absent is atomic within the process.

    Example:
        ```python
        cache = InMemoryCache()

        cache.set("Jwt-Kms-app-kid", "c2VjcmV0", ttl_seconds=300)
        cache.get("Jwt-Kms-app-kid")  # "c2VjcmV0"

        cache.set_if_absent("r-abc", "abc", ttl_seconds=60)  # True
        cache.set_if_absent("r-abc", "abc", ttl_seconds=60)  # False
        ```
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory cache."""
        self._store: dict[str, _CacheItem] = {}
        self._lock = threading.Lock()

    def _live(self, key: str, now: float) -> _CacheItem | None:
        item = self._store.get(key)
        if item is None:
            return None
        if now >= item.expires_at:
            # Lazy removal of expired entry
            self._store.pop(key, None)
            return None
        return item

    def get(self, key: str) -> str | None:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            item = self._live(key, time.time())
            return item.value if item else None

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with TTL, replacing any existing entry."""
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        with self._lock:
            self._store[key] = _CacheItem(value=value, expires_at=time.time() + ttl_seconds)

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store a value with TTL unless a live entry exists.

        Returns:
            True if written, False if the key was already present.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        with self._lock:
            now = time.time()
            if self._live(key, now) is not None:
                return False
            self._store[key] = _CacheItem(value=value, expires_at=now + ttl_seconds)
            return True


class RedisCache:
    """Redis-backed distributed cache.

    Uses Redis's native TTLs for expiry and ``SET NX EX`` for atomic
    set-if-absent writes, so revocations are safe across processes.

    Dependencies:
        Requires redis package: pip install redis

    Example:
        ```python
        import redis

        client = redis.Redis.from_url("redis://localhost:6379/0")
        cache = RedisCache(client, prefix="tokens:")

        cache.set("Jwt-Kms-app-kid", "c2VjcmV0", ttl_seconds=300)
        cache.set_if_absent("r-abc", "abc", ttl_seconds=60)
        ```

    Attributes:
        _client: Redis client instance (from redis package).
        _prefix: Prepended to every key.
    """

    def __init__(self, redis_client: Any, prefix: str = "") -> None:
        """Initialize Redis cache.

        Args:
            redis_client: Redis client instance. Must support get(), setex()
                and set(..., ex=, nx=).
            prefix: Namespace prepended to every key.

        Note:
            The type is Any so any Redis-compatible client works
            (redis-py, fakeredis, etc.).
        """
        self._client = redis_client
        self._prefix = prefix

    def get(self, key: str) -> str | None:
        """Return the cached value, or None if missing.

        Transport errors from the client propagate unchanged.
        """
        data = self._client.get(self._prefix + key)
        if data is None:
            return None
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return data

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with TTL via SETEX."""
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._client.setex(self._prefix + key, ttl_seconds, value)

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store a value with TTL via SET NX EX.

        Returns:
            True if written, False if the key already existed.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        return bool(self._client.set(self._prefix + key, value, ex=ttl_seconds, nx=True))
