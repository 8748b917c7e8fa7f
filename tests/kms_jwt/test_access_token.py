"""
Tests for AccessToken: creation, parsing, signature checks, validation and
refresh token revocation.
"""

import base64
import json

import pytest
from jwt.utils import base64url_decode, base64url_encode

import kms_jwt as m

NOW = 1_700_000_000  # matches the clock fixture


def _tamper_payload(raw: str, **changes) -> str:
    header, payload, signature = raw.split(".")
    claims = json.loads(base64url_decode(payload))
    claims.update(changes)
    new_payload = base64url_encode(json.dumps(claims).encode()).decode()
    return f"{header}.{new_payload}.{signature}"


class TestCreate:
    def test_claims(self, make_access_token, access_token_args, clock):
        token = make_access_token()

        assert token.get_claim("iss") == "id.serato.io"
        assert token.get_claim("aud") == ["svc-a", "svc-b"]
        assert token.get_claim("sub") == "access"
        assert token.get_claim("iat") == NOW
        assert token.get_claim("exp") == NOW + 10
        assert token.get_claim("app_id") == access_token_args["app_id"]
        assert token.get_claim("app_name") == access_token_args["app_name"]
        assert token.get_claim("uid") == access_token_args["user_id"]
        assert token.get_claim("email") == access_token_args["user_email"]
        assert token.get_claim("email_verified") is False
        assert token.get_claim("scopes") == access_token_args["scopes"]
        assert token.get_claim("rtid") == access_token_args["refresh_token_id"]

    def test_protected_headers(self, make_access_token, key_service):
        token = make_access_token()

        assert token.get_header("alg") == "HS512"
        assert token.get_header("crit") == ["iss", "aud", "sub", "exp"]
        assert token.get_header("aid") == "app-123"
        assert isinstance(token.get_header("kid"), str)
        ciphertext = base64.b64decode(token.get_header("kct"))
        assert ciphertext.startswith(b"master-key-xyz:")
        assert key_service.generate_calls == [("AES_128", "master-key-xyz")]

    def test_plaintext_secret_is_not_in_token(self, make_access_token, key_service):
        token = make_access_token()
        secret = key_service.decrypt(base64.b64decode(token.get_header("kct")))
        assert base64.b64encode(secret).decode() not in str(token)
        assert base64url_encode(secret).decode() not in str(token)

    def test_list_scopes(self, make_access_token):
        token = make_access_token(scopes=("user-read", "user-write"))
        assert token.get_claim("scopes") == ["user-read", "user-write"]

    def test_create_with_issued_at(self, key_service, access_token_args):
        token = m.AccessToken(key_service).create_with_issued_at(1000, **access_token_args)
        assert token.get_claim("iat") == 1000
        assert token.get_claim("exp") == 1010

    def test_custom_issuer(self, key_service, access_token_args):
        token = m.AccessToken(key_service, issuer="id.example.com").create(**access_token_args)
        assert token.get_claim("iss") == "id.example.com"

    def test_unused_token_is_empty(self, key_service):
        token = m.AccessToken(key_service)
        assert str(token) == ""
        assert token.get_claim("sub") is m.ABSENT

    def test_validate_before_create_raises(self, key_service):
        with pytest.raises(m.MalformedTokenError):
            m.AccessToken(key_service).validate("svc-a", m.InMemoryCache())

    def test_key_service_failure(self, failing_key_service, access_token_args):
        with pytest.raises(m.KeyServiceError):
            m.AccessToken(failing_key_service).create(**access_token_args)


class TestParse:
    def test_round_trip(self, make_access_token, key_service):
        token = make_access_token()
        parsed = m.AccessToken(key_service).parse_token_string(str(token))

        assert str(parsed) == str(token)
        assert dict(parsed.claims) == dict(token.claims)
        assert dict(parsed.headers) == dict(token.headers)

    def test_payload_tamper_fails_signature(self, make_access_token, key_service):
        token = make_access_token()
        tampered = _tamper_payload(str(token), uid=1)

        with pytest.raises(m.InvalidSignatureError):
            m.AccessToken(key_service).parse_token_string(tampered)

    def test_flipped_payload_byte_fails_signature(self, make_access_token, key_service):
        header, payload, signature = str(make_access_token()).split(".")
        raw = bytearray(base64url_decode(payload))
        # Flip a byte inside the "my app" string so the JSON stays valid
        i = raw.index(b"my app")
        raw[i] ^= 0x01
        flipped = base64url_encode(bytes(raw)).decode()

        with pytest.raises(m.InvalidSignatureError):
            m.AccessToken(key_service).parse_token_string(f"{header}.{flipped}.{signature}")

    def test_other_tokens_signature_fails(self, make_access_token, key_service):
        a, b = str(make_access_token()).split("."), str(make_access_token()).split(".")

        with pytest.raises(m.InvalidSignatureError):
            m.AccessToken(key_service).parse_token_string(f"{a[0]}.{a[1]}.{b[2]}")

    def test_alg_downgrade_fails_signature(self, make_access_token, key_service):
        header, payload, signature = str(make_access_token()).split(".")
        headers = json.loads(base64url_decode(header))
        headers["alg"] = "none"
        forged = base64url_encode(json.dumps(headers).encode()).decode()

        with pytest.raises(m.InvalidSignatureError):
            m.AccessToken(key_service).parse_token_string(f"{forged}.{payload}.")

    def test_malformed_token_never_reaches_key_service(self, key_service):
        with pytest.raises(m.MalformedTokenError):
            m.AccessToken(key_service).parse_token_string("not-a-token")
        with pytest.raises(m.MalformedTokenError):
            m.AccessToken(key_service).parse_token_string("e30.bm90IGpzb24.c2ln")
        assert key_service.decrypt_calls == 0

    def test_secret_cache_avoids_second_decrypt(self, make_access_token, key_service, clock):
        raw = str(make_access_token())
        cache = m.InMemoryCache()

        m.AccessToken(key_service).parse_token_string(raw, cache)
        m.AccessToken(key_service).parse_token_string(raw, cache)
        assert key_service.decrypt_calls == 1

    def test_fractional_expiry_is_cached(self, make_access_token, key_service, clock):
        raw = str(make_access_token(expiry_seconds=10.5))
        cache = m.InMemoryCache()

        m.AccessToken(key_service).parse_token_string(raw, cache)
        m.AccessToken(key_service).parse_token_string(raw, cache).validate(
            "svc-a", m.InMemoryCache()
        )
        assert key_service.decrypt_calls == 1

    def test_no_cache_decrypts_every_time(self, make_access_token, key_service, clock):
        raw = str(make_access_token())

        m.AccessToken(key_service).parse_token_string(raw)
        m.AccessToken(key_service).parse_token_string(raw)
        assert key_service.decrypt_calls == 2


class TestValidate:
    def test_scenario_audience_and_expiry(self, make_access_token, key_service, clock):
        revocations = m.InMemoryCache()
        raw = str(make_access_token(expiry_seconds=10, audience=["svc-a", "svc-b"]))
        token = m.AccessToken(key_service).parse_token_string(raw)

        token.validate("svc-a", revocations)

        with pytest.raises(m.InvalidAudienceError):
            token.validate("svc-c", revocations)

        clock[0] += 11
        with pytest.raises(m.TokenExpiredError):
            token.validate("svc-a", revocations)

    def test_scenario_revoked_refresh_token(self, make_access_token, key_service, clock):
        revocations = m.InMemoryCache()
        revoked = m.AccessToken(key_service).parse_token_string(
            str(make_access_token(refresh_token_id="abc", expiry_seconds=600))
        )
        other = m.AccessToken(key_service).parse_token_string(
            str(make_access_token(refresh_token_id="xyz", expiry_seconds=600))
        )

        assert m.revoke_refresh_token(revocations, "abc", ttl_seconds=3600) is True

        with pytest.raises(m.TokenExpiredError):
            revoked.validate("svc-a", revocations)
        other.validate("svc-a", revocations)

    def test_token_without_rtid_skips_revocation(self, key_service, clock):
        class LegacyToken(m.AccessToken):
            def create_legacy(self):
                self._create_with_kms(
                    kms_master_key_id="master-key-xyz",
                    app_id="app-123",
                    audience=["svc-a"],
                    subject=m.ACCESS_SUBJECT,
                    issued_at=NOW,
                    expires_at=NOW + 60,
                    custom_claims={"uid": 1},
                )
                return self

        class ExplodingStore:
            def get(self, key):
                raise AssertionError("revocation store must not be read")

        raw = str(LegacyToken(key_service).create_legacy())
        token = m.AccessToken(key_service).parse_token_string(raw)
        assert token.get_claim("rtid") is m.ABSENT

        token.validate("svc-a", ExplodingStore())  # type: ignore[arg-type]

    def test_revocation_store_errors_propagate(self, make_access_token, key_service, clock):
        class DownStore:
            def get(self, key):
                raise ConnectionError("cache down")

        token = m.AccessToken(key_service).parse_token_string(str(make_access_token()))

        with pytest.raises(ConnectionError):
            token.validate("svc-a", DownStore())  # type: ignore[arg-type]

    def test_revoked_record_must_match_id(self, make_access_token, key_service, clock):
        revocations = m.InMemoryCache()
        revocations.set(m.revocation_cache_key("abc"), "something-else", 60)
        token = m.AccessToken(key_service).parse_token_string(
            str(make_access_token(refresh_token_id="abc"))
        )

        token.validate("svc-a", revocations)

    def test_wrong_issuer_is_rejected(self, key_service, access_token_args, clock):
        raw = str(m.AccessToken(key_service, issuer="fake issuer").create(**access_token_args))
        token = m.AccessToken(key_service).parse_token_string(raw)

        with pytest.raises(m.InvalidIssuerError):
            token.validate("svc-a", m.InMemoryCache())

    def test_wrong_subject_is_rejected(self, key_service, clock):
        class RefreshLike(m.KmsToken):
            SIGNING_KEY_ID = "JWS_ACCESS_COMPACT_HS512"

            def create(self):
                self._create_with_kms(
                    kms_master_key_id="master-key-xyz",
                    app_id="app-123",
                    audience=["svc-a"],
                    subject="refresh",
                    issued_at=NOW,
                    expires_at=NOW + 60,
                    custom_claims={},
                )
                return self

        token = m.AccessToken(key_service).parse_token_string(
            str(RefreshLike(key_service).create())
        )
        with pytest.raises(m.InvalidSubjectError):
            token.validate("svc-a", m.InMemoryCache())

    def test_reserved_custom_claims_are_rejected(self, key_service):
        class Sneaky(m.KmsToken):
            def create(self):
                self._create_with_kms(
                    kms_master_key_id="k",
                    app_id="a",
                    audience=["svc-a"],
                    subject="access",
                    issued_at=NOW,
                    expires_at=NOW + 60,
                    custom_claims={"exp": NOW + 10**9},
                )

        with pytest.raises(ValueError):
            Sneaky(key_service).create()
        assert key_service.generate_calls == []

    def test_unchecked_crit_is_config_error(self, key_service, clock):
        class BadCrit(m.AccessToken):
            def create_bad(self):
                self._create_with_kms(
                    kms_master_key_id="k",
                    app_id="a",
                    audience=["svc-a"],
                    subject=m.ACCESS_SUBJECT,
                    issued_at=NOW,
                    expires_at=NOW + 60,
                    custom_claims={},
                    crit=["iss", "aud", "sub", "exp", "jti"],
                )
                return self

        token = m.AccessToken(key_service).parse_token_string(
            str(BadCrit(key_service).create_bad())
        )
        with pytest.raises(m.CriticalClaimsVerificationError):
            token.validate("svc-a", m.InMemoryCache())

    def test_non_string_rtid_is_malformed(self, key_service, clock):
        class OddRtid(m.AccessToken):
            def create_odd(self):
                self._create_with_kms(
                    kms_master_key_id="k",
                    app_id="a",
                    audience=["svc-a"],
                    subject=m.ACCESS_SUBJECT,
                    issued_at=NOW,
                    expires_at=NOW + 60,
                    custom_claims={"rtid": 123},
                )
                return self

        token = m.AccessToken(key_service).parse_token_string(
            str(OddRtid(key_service).create_odd())
        )
        with pytest.raises(m.MalformedTokenError):
            token.validate("svc-a", m.InMemoryCache())


class TestCustomHeaders:
    class Typed(m.AccessToken):
        def create_typed(self, headers):
            self._create_with_kms(
                kms_master_key_id="master-key-xyz",
                app_id="app-123",
                audience=["svc-a"],
                subject=m.ACCESS_SUBJECT,
                issued_at=NOW,
                expires_at=NOW + 60,
                custom_claims={},
                custom_headers=headers,
            )
            return self

    def test_custom_header_is_signed(self, key_service, clock):
        raw = str(self.Typed(key_service).create_typed({"typ": "JWT"}))
        token = m.AccessToken(key_service).parse_token_string(raw)

        assert token.get_header("typ") == "JWT"
        assert token.get_header("alg") == "HS512"

    @pytest.mark.parametrize(
        "headers",
        [{"alg": "none"}, {"crit": []}, {"kid": "mine"}, {"kct": "AAAA"}, {"aid": "x"}],
    )
    def test_reserved_headers_are_rejected(self, key_service, headers):
        with pytest.raises(ValueError):
            self.Typed(key_service).create_typed(headers)
        assert key_service.generate_calls == []
