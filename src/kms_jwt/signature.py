"""HMAC signature engine backed by PyJWT.

The data key recovered from the key service is wrapped in an ``oct`` JWK
and signed/verified with PyJWT's HMAC implementation. Only one algorithm
is allowed per engine, so a token cannot choose its own algorithm.
"""

from __future__ import annotations

from typing import Final

from jwt import PyJWK
from jwt.utils import base64url_encode

SIGNER_ALG: Final[str] = "HS512"
"""The only algorithm used to sign KMS tokens."""


class HmacSignatureEngine:
    """Implements the SignatureEngine protocol for a single HMAC algorithm.

    Example:
        ```python
        engine = HmacSignatureEngine()
        sig = engine.sign(b"header.payload", secret, "HS512")
        assert engine.verify(b"header.payload", sig, secret, "HS512")
        ```
    """

    def __init__(self, alg: str = SIGNER_ALG) -> None:
        if not alg.startswith("HS"):
            raise ValueError(f"HmacSignatureEngine only supports HS* algorithms, got {alg}")
        self._alg = alg

    @property
    def alg(self) -> str:
        return self._alg

    def _jwk(self, secret: bytes, key_id: str | None) -> PyJWK:
        data = {
            "kty": "oct",
            "alg": self._alg,
            "use": "sig",
            "k": base64url_encode(secret).decode("ascii"),
        }
        if key_id:
            data["kid"] = key_id
        return PyJWK.from_dict(data)

    def sign(
        self,
        signing_input: bytes,
        secret: bytes,
        alg: str,
        *,
        key_id: str | None = None,
    ) -> bytes:
        if alg != self._alg:
            raise ValueError(f"Unsupported signing algorithm {alg!r}")
        jwk = self._jwk(secret, key_id)
        return jwk.Algorithm.sign(signing_input, jwk.key)

    def verify(
        self,
        signing_input: bytes,
        signature: bytes,
        secret: bytes,
        alg: str,
        *,
        key_id: str | None = None,
    ) -> bool:
        # The algorithm comes from the untrusted header
        if alg != self._alg:
            return False
        jwk = self._jwk(secret, key_id)
        return jwk.Algorithm.verify(signing_input, jwk.key, signature)
