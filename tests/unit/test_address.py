"""
Unit tests for P2WSH address derivation and address helpers.
"""

import pytest
from embit import hashes

from htlc_sdk.core.address import (
    derive_p2wsh_address,
    p2wsh_script_pubkey,
    address_to_script_pubkey,
    public_key_hash_from_address,
    resolve_network,
)
from htlc_sdk.core.script import compile_hashlock_script
from htlc_sdk.errors import InvalidConfigError, InvalidScriptParamsError

# HASH160 of the compressed public key for private key 1
KEY_ONE_HASH160 = "751e76e8199196d454941c45d1b3a323f1433bd6"


@pytest.fixture
def htlc_script(secret_hash, recipient_pubkey, funder_pubkey):
    return compile_hashlock_script(secret_hash, 114, recipient_pubkey, funder_pubkey)


class TestDeriveP2wshAddress:
    """Tests for derive_p2wsh_address."""

    @pytest.mark.unit
    @pytest.mark.parametrize("network,prefix", [
        ("regtest", "bcrt1q"),
        ("test", "tb1q"),
        ("testnet", "tb1q"),
        ("signet", "tb1q"),
        ("main", "bc1q"),
    ])
    def test_network_prefix(self, htlc_script, network, prefix):
        address, _ = derive_p2wsh_address(htlc_script, network)
        assert address.startswith(prefix)

    @pytest.mark.unit
    def test_witness_program_is_sha256(self, htlc_script):
        _, program = derive_p2wsh_address(htlc_script)
        assert program == hashes.sha256(htlc_script)

    @pytest.mark.unit
    def test_deterministic(self, htlc_script):
        assert derive_p2wsh_address(htlc_script) == derive_p2wsh_address(htlc_script.hex())

    @pytest.mark.unit
    def test_distinct_scripts_distinct_addresses(self, secret_hash, recipient_pubkey, funder_pubkey):
        a = compile_hashlock_script(secret_hash, 114, recipient_pubkey, funder_pubkey)
        b = compile_hashlock_script(secret_hash, 114, funder_pubkey, recipient_pubkey)
        assert derive_p2wsh_address(a)[0] != derive_p2wsh_address(b)[0]

    @pytest.mark.unit
    def test_address_decodes_back_to_program(self, htlc_script):
        address, program = derive_p2wsh_address(htlc_script, "regtest")
        script_pubkey = address_to_script_pubkey(address)

        assert script_pubkey.data == b"\x00\x20" + program
        assert script_pubkey.data == p2wsh_script_pubkey(htlc_script).data

    @pytest.mark.unit
    def test_rejects_empty_script(self):
        with pytest.raises(InvalidScriptParamsError):
            derive_p2wsh_address(b"")

    @pytest.mark.unit
    def test_rejects_unknown_network(self, htlc_script):
        with pytest.raises(InvalidConfigError):
            derive_p2wsh_address(htlc_script, "liquid")


class TestAddressHelpers:
    """Tests for address decoding helpers."""

    @pytest.mark.unit
    def test_resolve_network_aliases(self):
        assert resolve_network("mainnet") is resolve_network("main")

    @pytest.mark.unit
    @pytest.mark.parametrize("kind", ["p2pkh", "p2wpkh"])
    def test_public_key_hash_from_address(self, funder_key, kind):
        address = funder_key.address("regtest", kind)
        assert public_key_hash_from_address(address).hex() == KEY_ONE_HASH160

    @pytest.mark.unit
    def test_public_key_hash_rejects_p2wsh(self, htlc_script):
        address, _ = derive_p2wsh_address(htlc_script)
        with pytest.raises(InvalidScriptParamsError):
            public_key_hash_from_address(address)

    @pytest.mark.unit
    def test_invalid_address(self):
        with pytest.raises(InvalidScriptParamsError):
            address_to_script_pubkey("not-an-address")
