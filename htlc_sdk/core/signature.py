"""
HTLC SDK - Signature Encoding

Canonical-signature checks for ECDSA signatures used in witness stacks.
Script signatures are DER + one sighash-type byte. Parsing goes through
libsecp256k1 (via embit); the stricter BIP66 shape rules and the low-S rule
are checked here.
"""

from typing import Tuple

from embit.transaction import SIGHASH
from embit.util import secp256k1

from ..errors import InvalidSignatureError

# secp256k1 group order
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
HALF_CURVE_ORDER = CURVE_ORDER // 2


def is_strict_der(sig: bytes) -> bool:
    """
    Check a bare DER signature (no sighash byte) against BIP66 rules.
    """
    if len(sig) < 8 or len(sig) > 72:
        return False
    if sig[0] != 0x30 or sig[1] != len(sig) - 2:
        return False
    len_r = sig[3]
    if 5 + len_r >= len(sig):
        return False
    len_s = sig[5 + len_r]
    if len_r + len_s + 6 != len(sig):
        return False

    if sig[2] != 0x02 or len_r == 0 or sig[4] & 0x80:
        return False
    if len_r > 1 and sig[4] == 0x00 and not sig[5] & 0x80:
        return False

    s_start = 6 + len_r
    if sig[s_start - 2] != 0x02 or len_s == 0 or sig[s_start] & 0x80:
        return False
    if len_s > 1 and sig[s_start] == 0x00 and not sig[s_start + 1] & 0x80:
        return False
    return True


def decode_der(sig: bytes) -> Tuple[int, int]:
    """
    Decode a strict DER signature into (r, s).

    Raises:
        InvalidSignatureError: If the encoding is not strict DER or the
            values are out of range.
    """
    if not is_strict_der(sig):
        raise InvalidSignatureError("Signature is not strict DER", sig)
    try:
        compact = secp256k1.ecdsa_signature_serialize_compact(secp256k1.ecdsa_signature_parse_der(sig))
    except ValueError:
        raise InvalidSignatureError("Signature could not be parsed", sig)
    r = int.from_bytes(compact[:32], "big")
    s = int.from_bytes(compact[32:], "big")
    # libsecp256k1 zeroes overflowing values instead of failing
    if not (0 < r < CURVE_ORDER and 0 < s < CURVE_ORDER):
        raise InvalidSignatureError("Signature values out of range", sig)
    return r, s


def encode_script_signature(der: bytes, sighash: int = SIGHASH.ALL) -> bytes:
    """Append the sighash-type byte and check the result is canonical."""
    script_sig = der + bytes([sighash])
    ensure_canonical(script_sig)
    return script_sig


def ensure_canonical(script_sig: bytes) -> Tuple[int, int]:
    """
    Validate a script signature (DER + sighash byte).

    The DER part must be strict, S must be in the lower half of the curve
    order, and the sighash type must be a defined one.

    Returns:
        The decoded (r, s) pair.

    Raises:
        InvalidSignatureError: If any rule is violated.
    """
    if not script_sig:
        raise InvalidSignatureError("Empty signature")
    sighash = script_sig[-1] & ~SIGHASH.ANYONECANPAY
    if sighash not in (SIGHASH.ALL, SIGHASH.NONE, SIGHASH.SINGLE):
        raise InvalidSignatureError(f"Undefined sighash type: {script_sig[-1]:#x}", script_sig)
    r, s = decode_der(script_sig[:-1])
    if s > HALF_CURVE_ORDER:
        raise InvalidSignatureError("Signature has high S value", script_sig)
    return r, s
