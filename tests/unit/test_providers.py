"""
Unit tests for key providers.
"""

import pickle

import pytest

from htlc_sdk.core.signature import decode_der, CURVE_ORDER
from htlc_sdk.errors import InvalidConfigError, InvalidKeyError, MissingConfigError
from htlc_sdk.providers import EnvKeyProvider, FileKeyProvider, MemoryKeyProvider

KEY_ONE = "00" * 31 + "01"
PUBKEY_ONE = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"


class TestLoading:

    @pytest.mark.unit
    def test_from_hex(self):
        assert MemoryKeyProvider(KEY_ONE).public_key == PUBKEY_ONE

    @pytest.mark.unit
    def test_wif_round_trip(self):
        key = MemoryKeyProvider(KEY_ONE)
        assert MemoryKeyProvider(key.export_wif("regtest")).public_key == PUBKEY_ONE

    @pytest.mark.unit
    def test_surrounding_whitespace(self):
        assert MemoryKeyProvider(f"  {KEY_ONE}\n").public_key == PUBKEY_ONE

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["", "   ", "zz" * 32])
    def test_invalid_key(self, value):
        with pytest.raises(InvalidKeyError):
            MemoryKeyProvider(value)

    @pytest.mark.unit
    def test_generate(self):
        first, second = MemoryKeyProvider.generate(), MemoryKeyProvider.generate()
        assert len(first.public_key_bytes) == 33
        assert first.public_key != second.public_key

    @pytest.mark.unit
    def test_generate_for_network(self):
        key = MemoryKeyProvider.generate("main")
        assert key.network == "main"
        assert key.export_wif() == key.export_wif("main")
        assert key.export_wif() != key.export_wif("regtest")
        assert MemoryKeyProvider(key.export_wif()).public_key == key.public_key

    @pytest.mark.unit
    def test_generate_unknown_network(self):
        with pytest.raises(InvalidConfigError):
            MemoryKeyProvider.generate("moonnet")

    @pytest.mark.unit
    def test_env_provider(self, monkeypatch):
        monkeypatch.setenv("HTLC_PRIVATE_KEY", KEY_ONE)
        assert EnvKeyProvider().public_key == PUBKEY_ONE

    @pytest.mark.unit
    def test_env_provider_custom_variable(self, monkeypatch):
        monkeypatch.setenv("SWAP_KEY", KEY_ONE)
        assert EnvKeyProvider("SWAP_KEY").public_key == PUBKEY_ONE

    @pytest.mark.unit
    def test_env_provider_missing(self, monkeypatch):
        monkeypatch.delenv("HTLC_PRIVATE_KEY", raising=False)
        with pytest.raises(MissingConfigError):
            EnvKeyProvider()

    @pytest.mark.unit
    def test_file_provider(self, tmp_path):
        path = tmp_path / "key.txt"
        path.write_text(KEY_ONE + "\n")
        assert FileKeyProvider(str(path)).public_key == PUBKEY_ONE


class TestSigning:

    @pytest.mark.unit
    def test_sign_and_verify(self, funder_key):
        digest = b"\xab" * 32
        signature = funder_key.sign(digest)

        assert funder_key.verify(digest, signature)
        assert not funder_key.verify(b"\xcd" * 32, signature)

    @pytest.mark.unit
    def test_signature_is_low_s(self, funder_key):
        for i in range(8):
            _, s = decode_der(funder_key.sign(bytes([i]) * 32))
            assert s <= CURVE_ORDER // 2

    @pytest.mark.unit
    def test_other_key_does_not_verify(self, funder_key, other_key):
        digest = b"\x11" * 32
        assert not other_key.verify(digest, funder_key.sign(digest))

    @pytest.mark.unit
    def test_garbage_signature(self, funder_key):
        assert funder_key.verify(b"\x11" * 32, b"\x30\x00") is False

    @pytest.mark.unit
    def test_digest_must_be_32_bytes(self, funder_key):
        with pytest.raises(ValueError):
            funder_key.sign(b"\x00" * 31)


class TestAddresses:

    @pytest.mark.unit
    def test_public_key_hash(self):
        key = MemoryKeyProvider(KEY_ONE)
        assert key.public_key_hash.hex() == "751e76e8199196d454941c45d1b3a323f1433bd6"

    @pytest.mark.unit
    def test_mainnet_p2pkh(self):
        assert MemoryKeyProvider(KEY_ONE).address("main") == "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"

    @pytest.mark.unit
    def test_mainnet_p2wpkh(self):
        address = MemoryKeyProvider(KEY_ONE).address("main", "p2wpkh")
        assert address == "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"

    @pytest.mark.unit
    def test_regtest_prefixes(self, funder_key):
        assert funder_key.address("regtest")[0] in "mn"
        assert funder_key.address("regtest", "p2wpkh").startswith("bcrt1q")

    @pytest.mark.unit
    def test_unknown_kind(self, funder_key):
        with pytest.raises(ValueError):
            funder_key.address("regtest", "p2tr")


class TestSecurity:

    @pytest.mark.unit
    @pytest.mark.security
    def test_cannot_pickle(self, funder_key):
        with pytest.raises(TypeError, match="cannot be pickled"):
            pickle.dumps(funder_key)

    @pytest.mark.unit
    @pytest.mark.security
    def test_repr_does_not_leak_private_key(self):
        key = MemoryKeyProvider(KEY_ONE)
        text = repr(key) + str(key)

        assert "public_key=" in text
        assert KEY_ONE not in text
        assert key.export_wif() not in text
