"""Core layer package."""

from .script import (
    compile_hashlock_script,
    compile_pubkey_hash_hashlock_script,
    parse_htlc_script,
    PubkeyHtlc,
    PubkeyHashHtlc,
)
from .address import derive_p2wsh_address, public_key_hash_from_address
from .selection import select_inputs
from .funding import FundingTxBuilder
from .redemption import RedemptionTxBuilder, encode_relative_locktime
from .witness import ClaimWitness, RefundWitness, WitnessEncoder
from .verifier import ScriptVerifier, verify_redemption
from .reservation import UtxoReservation
from .secret import hash_secret, generate_secret, verify_preimage

__all__ = [
    "compile_hashlock_script",
    "compile_pubkey_hash_hashlock_script",
    "parse_htlc_script",
    "PubkeyHtlc",
    "PubkeyHashHtlc",
    "derive_p2wsh_address",
    "public_key_hash_from_address",
    "select_inputs",
    "FundingTxBuilder",
    "RedemptionTxBuilder",
    "encode_relative_locktime",
    "ClaimWitness",
    "RefundWitness",
    "WitnessEncoder",
    "ScriptVerifier",
    "verify_redemption",
    "UtxoReservation",
    "hash_secret",
    "generate_secret",
    "verify_preimage",
]
