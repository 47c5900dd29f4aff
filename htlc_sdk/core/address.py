"""
HTLC SDK - Address Derivation

Wraps witness scripts into P2WSH outputs and addresses.
"""

from functools import lru_cache
from typing import Tuple, Union

from embit import hashes
from embit.networks import NETWORKS
from embit.script import Script, p2wsh, address_to_scriptpubkey

from ..constants import EMBIT_NETWORKS, PUBKEY_HASH_SIZE
from ..errors import InvalidConfigError, InvalidScriptParamsError


def resolve_network(network: str) -> dict:
    """
    Map an SDK network name to embit's network parameters.

    Raises:
        InvalidConfigError: For unknown network names.
    """
    key = EMBIT_NETWORKS.get(network)
    if key is None:
        raise InvalidConfigError(f"Unknown network: {network}", {"network": network})
    return NETWORKS[key]


@lru_cache(maxsize=256)
def _derive(script: bytes, network: str) -> Tuple[str, bytes]:
    witness_program = hashes.sha256(script)
    address = p2wsh(Script(script)).address(resolve_network(network))
    return address, witness_program


def derive_p2wsh_address(script: Union[bytes, str], network: str = "regtest") -> Tuple[str, bytes]:
    """
    Derive the P2WSH address committing to a witness script.

    The result depends only on the script and network, so it is cached.

    Args:
        script: Witness script (bytes or hex).
        network: "main", "test", "signet" or "regtest".

    Returns:
        (bech32 address, 32-byte witness program = SHA256(script))
    """
    if isinstance(script, str):
        script = bytes.fromhex(script)
    if not script:
        raise InvalidScriptParamsError("Cannot derive an address for an empty script")
    return _derive(bytes(script), network)


def p2wsh_script_pubkey(script: bytes) -> Script:
    """scriptPubKey (OP_0 <sha256(script)>) for a witness script."""
    return p2wsh(Script(script))


def address_to_script_pubkey(address: str) -> Script:
    """Decode any standard address into its scriptPubKey."""
    try:
        return address_to_scriptpubkey(address)
    except Exception as e:
        raise InvalidScriptParamsError(f"Invalid address: {address}", {"error": str(e)})


def public_key_hash_from_address(address: str) -> bytes:
    """
    Extract the 20-byte HASH160 committed to by a P2PKH or P2WPKH address.

    Raises:
        InvalidScriptParamsError: For any other address type.
    """
    script_pubkey = address_to_script_pubkey(address)
    script_type = script_pubkey.script_type()
    data = script_pubkey.data
    if script_type == "p2pkh":
        # OP_DUP OP_HASH160 <20> ... OP_EQUALVERIFY OP_CHECKSIG
        pubkey_hash = data[3:3 + PUBKEY_HASH_SIZE]
    elif script_type == "p2wpkh":
        # OP_0 <20> ...
        pubkey_hash = data[2:2 + PUBKEY_HASH_SIZE]
    else:
        raise InvalidScriptParamsError(
            f"Address has no public key hash: {address}",
            {"script_type": script_type}
        )
    return pubkey_hash
