"""Token envelope: protected headers, claims and signature.

The compact serialization is::

    base64url(header JSON) "." base64url(claims JSON) "." base64url(signature)

with base64url unpadded. The envelope keeps the encoded header and payload
segments it was created or parsed from, so serializing always reproduces the
exact bytes that were signed.

Parsing only checks structure. Signatures and claims are checked later by
the key manager, the signature engine and the claim checkers.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, Final

from jwt.utils import base64url_decode, base64url_encode

from .errors import MalformedTokenError
from .protocols import Claims, Headers

_SEGMENT: Final = re.compile(r"[A-Za-z0-9_-]*")
"""Unpadded base64url alphabet."""


class _Absent:
    """Type of the ABSENT sentinel."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Final = _Absent()
"""Returned by get_claim/get_header when the key is not present.

Distinct from None, which is returned for a JSON ``null`` value.
"""

_EMPTY: Final[Mapping[str, Any]] = MappingProxyType({})


def _encode_json(obj: Mapping[str, Any]) -> str:
    data = json.dumps(dict(obj), separators=(",", ":")).encode("utf-8")
    return base64url_encode(data).decode("ascii")


def _decode_segment(segment: str) -> bytes:
    if not _SEGMENT.fullmatch(segment):
        raise MalformedTokenError("Token segment is not valid base64url")
    try:
        return base64url_decode(segment)
    except ValueError as e:
        raise MalformedTokenError("Token segment is not valid base64url") from e


def _decode_object(segment: str) -> dict[str, Any]:
    raw = _decode_segment(segment)
    try:
        obj = json.loads(raw)
    except ValueError as e:
        raise MalformedTokenError("Token segment is not valid JSON") from e
    if not isinstance(obj, dict):
        raise MalformedTokenError("Token segment is not a JSON object")
    return obj


class TokenEnvelope:
    """One token: protected headers, claims and signature.

    An envelope is either fully populated (from create() or parse()) or fully
    empty (``TokenEnvelope()``). Headers and claims are exposed read-only.

    Example:
        ```python
        env = TokenEnvelope.create(
            {"alg": "HS512", "crit": ["iss", "aud", "sub", "exp"]},
            {"iss": "id.serato.io", "aud": ["svc-a"], "sub": "access", ...},
            sign=lambda data: engine.sign(data, secret, "HS512"),
        )
        same = TokenEnvelope.parse(str(env))
        assert same.get_claim("sub") == "access"
        ```
    """

    __slots__ = (
        "_headers",
        "_claims",
        "_signature",
        "_header_segment",
        "_payload_segment",
    )

    def __init__(self) -> None:
        self._headers: Mapping[str, Any] = _EMPTY
        self._claims: Mapping[str, Any] = _EMPTY
        self._signature = b""
        self._header_segment = ""
        self._payload_segment = ""

    @classmethod
    def _populated(
        cls,
        header_segment: str,
        payload_segment: str,
        headers: dict[str, Any],
        claims: dict[str, Any],
        signature: bytes,
    ) -> TokenEnvelope:
        env = cls()
        env._header_segment = header_segment
        env._payload_segment = payload_segment
        env._headers = MappingProxyType(headers)
        env._claims = MappingProxyType(claims)
        env._signature = signature
        return env

    @classmethod
    def create(
        cls,
        headers: Mapping[str, Any],
        claims: Mapping[str, Any],
        sign: Callable[[bytes], bytes],
    ) -> TokenEnvelope:
        """Encode and sign a new envelope.

        Args:
            headers: Protected headers; must include `alg` and `crit`.
            claims: Claim set; values must be JSON-compatible.
            sign: Called once with the signing input, returns the signature.

        Raises:
            TypeError: If a header or claim value is not JSON-compatible.
        """
        header_segment = _encode_json(headers)
        payload_segment = _encode_json(claims)
        signing_input = f"{header_segment}.{payload_segment}".encode("ascii")
        # Decode back so the stored mappings are exactly what was signed.
        return cls._populated(
            header_segment,
            payload_segment,
            _decode_object(header_segment),
            _decode_object(payload_segment),
            sign(signing_input),
        )

    @classmethod
    def parse(cls, token: str) -> TokenEnvelope:
        """Parse a compact token string.

        Raises:
            MalformedTokenError: If the string is not three base64url parts
                or the header/payload is not a JSON object.
        """
        parts = token.split(".")
        if len(parts) != 3:
            raise MalformedTokenError("Token must have exactly three parts")

        header_segment, payload_segment, signature_segment = parts
        headers = _decode_object(header_segment)
        claims = _decode_object(payload_segment)
        signature = _decode_segment(signature_segment)
        return cls._populated(header_segment, payload_segment, headers, claims, signature)

    @property
    def is_empty(self) -> bool:
        return not self._header_segment

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def claims(self) -> Claims:
        return self._claims

    @property
    def signature(self) -> bytes:
        return self._signature

    @property
    def signing_input(self) -> bytes:
        """The bytes the signature covers: ``header_segment.payload_segment``."""
        return f"{self._header_segment}.{self._payload_segment}".encode("ascii")

    def get_claim(self, name: str) -> Any:
        """Return a claim value, or ABSENT if the claim is not present."""
        return self._claims.get(name, ABSENT)

    def get_header(self, name: str) -> Any:
        """Return a protected header value, or ABSENT if it is not present."""
        return self._headers.get(name, ABSENT)

    def serialize(self) -> str:
        """Return the compact serialization ("" for an empty envelope)."""
        if self.is_empty:
            return ""
        signature_segment = base64url_encode(self._signature).decode("ascii")
        return f"{self._header_segment}.{self._payload_segment}.{signature_segment}"

    def __str__(self) -> str:
        return self.serialize()

    def __repr__(self) -> str:
        if self.is_empty:
            return "TokenEnvelope(<empty>)"
        return f"TokenEnvelope(headers={dict(self._headers)!r}, claims={dict(self._claims)!r})"
