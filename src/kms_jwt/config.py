"""Environment-based configuration.

Settings are read from the process environment after loading a `.env` file
with python-dotenv, so local development can keep secrets out of the shell.

Variables
---------
KMS_JWT_ISSUER                Expected/written `iss` claim (default "id.serato.io")
KMS_MASTER_KEY_ID             KMS master key used to generate data keys
AWS_REGION                    Region of the KMS client
REDIS_URL                     Redis holding the secret and revocation caches
ACCESS_TOKEN_AUDIENCE         Audience this service validates tokens for
ACCESS_TOKEN_EXPIRY_SECONDS   Lifetime of new access tokens (default 900)
REVOCATION_TTL_SECONDS        Lifetime of revocation records (default 30 days)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from dotenv import load_dotenv

from .checkers import DEFAULT_ISSUER

_DEFAULT_EXPIRY_SECONDS: Final[int] = 900
_DEFAULT_REVOCATION_TTL_SECONDS: Final[int] = 30 * 24 * 60 * 60


@dataclass(frozen=True, slots=True)
class Settings:
    """Deployment settings for issuing and validating tokens.

    Attributes:
        issuer: Value of the `iss` claim.
        kms_master_key_id: Master key for new data keys (issuers only).
        aws_region: Region of the KMS client; boto3's default chain if None.
        redis_url: Redis URL for the caches; in-memory caches if None.
        audience: Audience this service validates tokens for.
        access_token_expiry_seconds: Lifetime of new access tokens.
        revocation_ttl_seconds: Lifetime of revocation records. Must cover
            the longest access token lifetime.
    """

    issuer: str = DEFAULT_ISSUER
    kms_master_key_id: str | None = None
    aws_region: str | None = None
    redis_url: str | None = None
    audience: str | None = None
    access_token_expiry_seconds: int = _DEFAULT_EXPIRY_SECONDS
    revocation_ttl_seconds: int = _DEFAULT_REVOCATION_TTL_SECONDS


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment.

    Args:
        env: Mapping to read instead of ``os.environ``. When omitted, a `.env`
            file is loaded first (existing variables win).

    Raises:
        ValueError: If an integer setting is malformed or not positive.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    return Settings(
        issuer=env.get("KMS_JWT_ISSUER") or DEFAULT_ISSUER,
        kms_master_key_id=env.get("KMS_MASTER_KEY_ID") or None,
        aws_region=env.get("AWS_REGION") or None,
        redis_url=env.get("REDIS_URL") or None,
        audience=env.get("ACCESS_TOKEN_AUDIENCE") or None,
        access_token_expiry_seconds=_positive_int(
            env, "ACCESS_TOKEN_EXPIRY_SECONDS", _DEFAULT_EXPIRY_SECONDS
        ),
        revocation_ttl_seconds=_positive_int(
            env, "REVOCATION_TTL_SECONDS", _DEFAULT_REVOCATION_TTL_SECONDS
        ),
    )
