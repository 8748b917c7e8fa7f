"""
AWS KMS key service.

Generates and decrypts token data keys with the AWS Key Management Service
through boto3.
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import KeyServiceError
from ..key_manager import DataKey

logger = logging.getLogger(__name__)


class AwsKmsKeyService:
    """
    KeyService backed by AWS KMS.

    Operations
    ----------
    generate_data_key
        ``GenerateDataKey(KeySpec=..., KeyId=master_key_id)``. The plaintext
        signs one token; the ciphertext blob is embedded in the token.

    decrypt
        ``Decrypt(CiphertextBlob=...)``. KMS finds the master key from the
        ciphertext itself, so the token does not need to name it.

    Errors
    ------
    botocore ``ClientError`` and ``BotoCoreError`` are raised as
    KeyServiceError. Retries are left to botocore's own retry configuration.

    Parameters
    ----------
    client : Any
        A boto3 ``kms`` client. Created from ``region_name`` if omitted.

    region_name : str | None
        AWS region used when creating the client.

    Example
    -------
    key_service = AwsKmsKeyService(region_name="us-east-1")
    token = AccessToken(key_service).create(...)
    """

    def __init__(self, client: Any = None, region_name: str | None = None) -> None:
        self._client = client or boto3.client("kms", region_name=region_name)

    def generate_data_key(self, key_spec: str, master_key_id: str) -> DataKey:
        try:
            result = self._client.generate_data_key(KeyId=master_key_id, KeySpec=key_spec)
        except (ClientError, BotoCoreError) as e:
            logger.warning("KMS GenerateDataKey failed for key %s: %s", master_key_id, e)
            raise KeyServiceError("KMS GenerateDataKey failed") from e

        return DataKey(plaintext=result["Plaintext"], ciphertext=result["CiphertextBlob"])

    def decrypt(self, ciphertext: bytes) -> bytes:
        try:
            result = self._client.decrypt(CiphertextBlob=ciphertext)
        except (ClientError, BotoCoreError) as e:
            logger.warning("KMS Decrypt failed: %s", e)
            raise KeyServiceError("KMS Decrypt failed") from e

        logger.debug("KMS Decrypt succeeded with key %s", result.get("KeyId"))
        return result["Plaintext"]
