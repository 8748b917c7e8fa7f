import os
import time
import uuid

import pytest
from flask import Flask

import kms_jwt as m

NOW = 1_700_000_000


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    return app


class FakeKeyService:
    """
    Duck-typed KeyService for tests.

    Every data key gets a random plaintext and an opaque ciphertext; decrypt
    looks the ciphertext up and counts calls.
    """

    def __init__(self):
        self._keys: dict[bytes, bytes] = {}
        self.generate_calls: list[tuple[str, str]] = []
        self.decrypt_calls = 0

    def generate_data_key(self, key_spec: str, master_key_id: str) -> m.DataKey:
        self.generate_calls.append((key_spec, master_key_id))
        plaintext = os.urandom(16)
        ciphertext = f"{master_key_id}:{uuid.uuid4().hex}".encode()
        self._keys[ciphertext] = plaintext
        return m.DataKey(plaintext=plaintext, ciphertext=ciphertext)

    def decrypt(self, ciphertext: bytes) -> bytes:
        self.decrypt_calls += 1
        try:
            return self._keys[ciphertext]
        except KeyError:
            raise m.KeyServiceError("Unknown ciphertext") from None


class FailingKeyService:
    """KeyService whose client blows up with a non-domain error."""

    def generate_data_key(self, key_spec: str, master_key_id: str) -> m.DataKey:
        raise ConnectionError("network down")

    def decrypt(self, ciphertext: bytes) -> bytes:
        raise ConnectionError("network down")


@pytest.fixture
def key_service() -> FakeKeyService:
    return FakeKeyService()


@pytest.fixture
def failing_key_service() -> FailingKeyService:
    return FailingKeyService()


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Freeze time.time(); tests move time by assigning clock[0]."""
    now = [float(NOW)]
    monkeypatch.setattr(time, "time", lambda: now[0])
    return now


ACCESS_TOKEN_ARGS = {
    "app_id": "app-123",
    "app_name": "my app",
    "expiry_seconds": 10,
    "audience": ["svc-a", "svc-b"],
    "kms_master_key_id": "master-key-xyz",
    "user_id": 987654,
    "user_email": "user@example.net",
    "email_verified": False,
    "scopes": {"svc-a": ["profile-edit"], "svc-b": ["user-read"]},
    "refresh_token_id": "rtid-456-def",
}


@pytest.fixture
def access_token_args() -> dict:
    return dict(ACCESS_TOKEN_ARGS)


@pytest.fixture
def make_access_token(key_service: FakeKeyService):
    """
    Factory fixture that returns a function.

    Usage in tests:
        token = make_access_token(refresh_token_id="abc")
    """

    def _make(**overrides) -> m.AccessToken:
        args = {**ACCESS_TOKEN_ARGS, **overrides}
        return m.AccessToken(key_service).create(**args)

    return _make


class FakeRedis:
    """
    Minimal redis stub for RedisCache tests.
    Stores bytes under keys and supports get, setex and set(ex=, nx=).
    """

    def __init__(self):
        self._store: dict[str, tuple[bytes, int]] = {}

    def get(self, key: str):
        item = self._store.get(key)
        if item is None:
            return None
        data, expires_at = item
        if int(time.time()) >= expires_at:
            self._store.pop(key, None)
            return None
        return data

    def setex(self, key: str, ttl_seconds: int, value: str | bytes):
        expires_at = int(time.time()) + int(ttl_seconds)
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._store[key] = (value, expires_at)

    def set(self, key: str, value: str | bytes, ex: int | None = None, nx: bool = False):
        if nx and self.get(key) is not None:
            return None
        self.setex(key, ex if ex is not None else 10**9, value)
        return True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
