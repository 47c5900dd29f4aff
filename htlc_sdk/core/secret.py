"""Secret preimage helpers."""

import secrets
from typing import Tuple, Union

from embit import hashes

from ..errors import InvalidSecretError


def _as_bytes(value: Union[bytes, str]) -> bytes:
    # Plain strings are treated as UTF-8 preimages, not hex
    return value.encode() if isinstance(value, str) else bytes(value)


def hash_secret(secret: Union[bytes, str]) -> bytes:
    """SHA256 of a secret preimage."""
    return hashes.sha256(_as_bytes(secret))


def generate_secret(size: int = 32) -> Tuple[bytes, bytes]:
    """
    Generate a random secret and its hash.

    Returns:
        (secret, secret_hash)
    """
    secret = secrets.token_bytes(size)
    return secret, hash_secret(secret)


def verify_preimage(secret: Union[bytes, str], secret_hash: Union[bytes, str]) -> bytes:
    """
    Check that a secret hashes to the expected secret hash.

    Args:
        secret: Preimage bytes (str is UTF-8 encoded).
        secret_hash: Expected 32-byte hash (bytes or hex).

    Returns:
        The secret as bytes.

    Raises:
        InvalidSecretError: If the hashes differ.
    """
    secret_bytes = _as_bytes(secret)
    if isinstance(secret_hash, str):
        secret_hash = bytes.fromhex(secret_hash[2:] if secret_hash.startswith("0x") else secret_hash)
    actual = hash_secret(secret_bytes)
    if actual != secret_hash:
        raise InvalidSecretError(secret_hash.hex(), actual.hex())
    return secret_bytes
