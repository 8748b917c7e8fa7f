"""
Key service implementations for generating and decrypting token data keys.

This package contains implementations of the KeyService protocol.
"""

from .aws_kms import AwsKmsKeyService

__all__ = ["AwsKmsKeyService"]
