"""
Unit tests for secret preimage helpers.
"""

import pytest

from htlc_sdk.core.secret import generate_secret, hash_secret, verify_preimage
from htlc_sdk.errors import InvalidSecretError

HELLO_HASH = "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


class TestHashSecret:

    @pytest.mark.unit
    def test_known_vector(self):
        assert hash_secret(b"hello").hex() == HELLO_HASH

    @pytest.mark.unit
    def test_str_is_utf8(self):
        assert hash_secret("hello") == hash_secret(b"hello")

    @pytest.mark.unit
    def test_generate(self):
        secret, secret_hash = generate_secret()
        assert len(secret) == 32
        assert hash_secret(secret) == secret_hash
        assert generate_secret()[0] != secret


class TestVerifyPreimage:

    @pytest.mark.unit
    @pytest.mark.parametrize("expected", [HELLO_HASH, "0x" + HELLO_HASH, bytes.fromhex(HELLO_HASH)])
    def test_match(self, expected):
        assert verify_preimage("hello", expected) == b"hello"

    @pytest.mark.unit
    @pytest.mark.security
    def test_mismatch(self):
        with pytest.raises(InvalidSecretError) as exc:
            verify_preimage(b"goodbye", HELLO_HASH)
        assert exc.value.expected_hash == HELLO_HASH
        assert exc.value.actual_hash == hash_secret(b"goodbye").hex()

    @pytest.mark.unit
    @pytest.mark.security
    def test_hex_string_is_not_decoded(self):
        """Test a hex-looking secret is hashed as text, not as bytes."""
        with pytest.raises(InvalidSecretError):
            verify_preimage(b"hello".hex(), HELLO_HASH)
