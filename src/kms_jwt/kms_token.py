"""Base class for KMS-protected token kinds.

A token kind (e.g. AccessToken) fixes the subject, the custom claim shape
and the signing key id, and builds on the protected helpers here:

- _create_with_kms(): new data key -> headers -> sign -> envelope
- _parse_with_kms(): parse -> recover data key -> verify signature
- _check_claims(): ordered claim checks
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from .checkers import DEFAULT_CRIT, DEFAULT_ISSUER, verify_claims
from .envelope import TokenEnvelope
from .errors import InvalidSignatureError, MalformedTokenError
from .key_manager import EnvelopeKeyManager
from .signature import SIGNER_ALG, HmacSignatureEngine

if TYPE_CHECKING:
    from .protocols import CacheStore, Claims, Headers, KeyService, SignatureEngine

_RESERVED_CLAIMS = frozenset({"iss", "aud", "sub", "iat", "exp"})
_RESERVED_HEADERS = frozenset({"alg", "crit", "aid", "kid", "kct"})


class KmsToken:
    """A JWS token signed with a per-token KMS data key.

    Instances hold a single envelope. They start empty and are populated by
    a kind-specific create or parse call; str(token) is "" until then.

    Attributes:
        SIGNING_KEY_ID: Name of the signing key, set by each token kind.
    """

    SIGNING_KEY_ID: ClassVar[str] = ""

    def __init__(
        self,
        key_service: KeyService,
        signature_engine: SignatureEngine | None = None,
        *,
        issuer: str = DEFAULT_ISSUER,
    ) -> None:
        """Initialize an empty token.

        Args:
            key_service: Key service used to generate and decrypt data keys.
            signature_engine: Defaults to an HS512 HmacSignatureEngine.
            issuer: Value written to and expected in the `iss` claim.
        """
        self._keys = EnvelopeKeyManager(key_service)
        self._engine: SignatureEngine = signature_engine or HmacSignatureEngine()
        self._issuer = issuer
        self._envelope = TokenEnvelope()

    @property
    def envelope(self) -> TokenEnvelope:
        return self._envelope

    @property
    def claims(self) -> Claims:
        return self._envelope.claims

    @property
    def headers(self) -> Headers:
        return self._envelope.headers

    def get_claim(self, name: str) -> Any:
        """Return a claim value, or ABSENT if the token has no such claim."""
        return self._envelope.get_claim(name)

    def get_header(self, name: str) -> Any:
        """Return a protected header value, or ABSENT if there is none."""
        return self._envelope.get_header(name)

    def __str__(self) -> str:
        return self._envelope.serialize()

    def _create_with_kms(
        self,
        *,
        kms_master_key_id: str,
        app_id: str,
        audience: Sequence[str],
        subject: str,
        issued_at: int,
        expires_at: int,
        custom_claims: Mapping[str, Any],
        custom_headers: Mapping[str, Any] | None = None,
        issuer: str | None = None,
        crit: Sequence[str] | None = None,
    ) -> None:
        """Sign a new token with a freshly generated data key.

        ``issuer`` and ``crit`` overrides exist for tests only.

        Raises:
            ValueError: If custom claims or headers try to set a reserved name.
            KeyServiceError: If the data key cannot be generated.
        """
        overlap = _RESERVED_CLAIMS.intersection(custom_claims)
        if overlap:
            raise ValueError(f"Custom claims cannot set reserved claims: {sorted(overlap)}")
        overlap = _RESERVED_HEADERS.intersection(custom_headers or {})
        if overlap:
            raise ValueError(f"Custom headers cannot set reserved headers: {sorted(overlap)}")

        data_key = self._keys.create_secret(kms_master_key_id)

        headers: dict[str, Any] = {
            "alg": SIGNER_ALG,
            "crit": list(crit if crit is not None else DEFAULT_CRIT),
        }
        headers.update(custom_headers or {})
        headers.update(self._keys.key_headers(app_id, data_key))

        claims: dict[str, Any] = {
            "iss": issuer if issuer is not None else self._issuer,
            "aud": list(audience),
            "sub": subject,
            "iat": issued_at,
            "exp": expires_at,
        }
        claims.update(custom_claims)

        self._envelope = TokenEnvelope.create(
            headers,
            claims,
            sign=lambda data: self._engine.sign(
                data, data_key.plaintext, SIGNER_ALG, key_id=self.SIGNING_KEY_ID
            ),
        )

    def _parse_with_kms(self, token: str, cache: CacheStore | None = None) -> None:
        """Parse a compact token and verify its signature.

        Raises:
            MalformedTokenError: The string is not a well-formed token.
            MissingKeyHeaderError: A key header is missing.
            KeyServiceError: The data key cannot be decrypted.
            InvalidSignatureError: The signature does not verify.
        """
        envelope = TokenEnvelope.parse(token)
        secret = self._keys.recover_secret(envelope, cache)

        alg = envelope.get_header("alg")
        if not isinstance(alg, str) or not self._engine.verify(
            envelope.signing_input,
            envelope.signature,
            secret,
            alg,
            key_id=self.SIGNING_KEY_ID,
        ):
            raise InvalidSignatureError("Token signature verification failed")

        self._envelope = envelope

    def _check_claims(self, audience: str, subject: str) -> None:
        if self._envelope.is_empty:
            raise MalformedTokenError("Token has not been created or parsed")
        verify_claims(self._envelope, audience=audience, subject=subject, issuer=self._issuer)
