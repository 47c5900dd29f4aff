"""
HTLC SDK - Script Compiler

Builds the P2WSH witness scripts for both HTLC variants.

Pubkey variant (explicit recipient and sender keys):

    OP_IF
        OP_SHA256 <secret_hash> OP_EQUALVERIFY
        <recipient_pubkey> OP_CHECKSIG
    OP_ELSE
        <lock_time_blocks> OP_CHECKSEQUENCEVERIFY OP_DROP
        <sender_pubkey> OP_CHECKSIG
    OP_ENDIF

Pubkey-hash variant (single signer, branch chosen by witness only):

    OP_IF
        OP_SHA256 <secret_hash> OP_EQUALVERIFY
    OP_ELSE
        <lock_time_blocks> OP_CHECKSEQUENCEVERIFY OP_DROP
    OP_ENDIF
    OP_DUP OP_HASH160 <pubkey_hash> OP_EQUALVERIFY OP_CHECKSIG
"""

import struct
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from embit.script import Script

from ..constants import (
    SECRET_HASH_SIZE,
    PUBKEY_HASH_SIZE,
    COMPRESSED_PUBKEY_SIZE,
    MIN_LOCKTIME_BLOCKS,
    MAX_LOCKTIME_BLOCKS,
)
from ..errors import InvalidScriptParamsError


# Bitcoin Script opcodes
OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_1NEGATE = 0x4f
OP_1 = 0x51
OP_16 = 0x60
OP_IF = 0x63
OP_NOTIF = 0x64
OP_ELSE = 0x67
OP_ENDIF = 0x68
OP_DROP = 0x75
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_SHA256 = 0xa8
OP_HASH160 = 0xa9
OP_CHECKSIG = 0xac
OP_CHECKSEQUENCEVERIFY = 0xb2

BytesLike = Union[bytes, str]


def push_data(data: bytes) -> bytes:
    """Create the minimal push for a byte vector."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    elif length <= 0xff:
        return bytes([OP_PUSHDATA1, length]) + data
    elif length <= 0xffff:
        return bytes([OP_PUSHDATA2]) + struct.pack('<H', length) + data
    else:
        return bytes([OP_PUSHDATA4]) + struct.pack('<I', length) + data


def encode_script_num(n: int) -> bytes:
    """Encode an integer as a minimal CScriptNum byte vector."""
    if n == 0:
        return b""
    negative = n < 0
    abs_n = abs(n)
    result = bytearray()
    while abs_n:
        result.append(abs_n & 0xff)
        abs_n >>= 8
    # Sign lives in the top bit of the last byte
    if result[-1] & 0x80:
        result.append(0x80 if negative else 0x00)
    elif negative:
        result[-1] |= 0x80
    return bytes(result)


def decode_script_num(data: bytes, max_size: int = 4) -> int:
    """Decode a minimally-encoded CScriptNum."""
    if len(data) > max_size:
        raise ValueError(f"Script number overflow: {len(data)} > {max_size} bytes")
    if not data:
        return 0
    if data[-1] & 0x7f == 0 and (len(data) == 1 or not data[-2] & 0x80):
        raise ValueError("Non-minimally encoded script number")
    result = int.from_bytes(data, "little")
    if data[-1] & 0x80:
        return -(result & ~(0x80 << (8 * (len(data) - 1))))
    return result


def push_int(n: int) -> bytes:
    """Push an integer using the smallest opcode."""
    if n == 0:
        return bytes([OP_0])
    elif n == -1:
        return bytes([OP_1NEGATE])
    elif 1 <= n <= 16:
        return bytes([OP_1 + n - 1])
    return push_data(encode_script_num(n))


def to_fixed_bytes(value: BytesLike, size: int, name: str) -> bytes:
    """
    Normalize a hex string or bytes value and enforce its length.

    Raises:
        InvalidScriptParamsError: On bad hex or wrong length.
    """
    if isinstance(value, str):
        hex_value = value[2:] if value.startswith("0x") else value
        try:
            value = bytes.fromhex(hex_value)
        except ValueError:
            raise InvalidScriptParamsError(f"{name} is not valid hex", {"value": hex_value})
    if not isinstance(value, (bytes, bytearray)):
        raise InvalidScriptParamsError(f"{name} must be bytes or hex", {"type": type(value).__name__})
    if len(value) != size:
        raise InvalidScriptParamsError(
            f"{name} must be {size} bytes, got {len(value)}",
            {"expected": size, "actual": len(value)}
        )
    return bytes(value)


def validate_lock_time(lock_time_blocks: int) -> int:
    """Check that a block count fits a BIP68 relative locktime."""
    if isinstance(lock_time_blocks, bool) or not isinstance(lock_time_blocks, int):
        raise InvalidScriptParamsError("lock_time_blocks must be an integer")
    if not MIN_LOCKTIME_BLOCKS <= lock_time_blocks <= MAX_LOCKTIME_BLOCKS:
        raise InvalidScriptParamsError(
            f"lock_time_blocks must be in [{MIN_LOCKTIME_BLOCKS}, {MAX_LOCKTIME_BLOCKS}]",
            {"lock_time_blocks": lock_time_blocks}
        )
    return lock_time_blocks


def _to_pubkey(value: BytesLike, name: str) -> bytes:
    pubkey = to_fixed_bytes(value, COMPRESSED_PUBKEY_SIZE, name)
    if pubkey[0] not in (0x02, 0x03):
        raise InvalidScriptParamsError(f"{name} must be a compressed public key")
    return pubkey


# =============================================================================
# Compilers
# =============================================================================

def compile_hashlock_script(
    secret_hash: BytesLike,
    lock_time_blocks: int,
    recipient_pubkey: BytesLike,
    sender_pubkey: BytesLike
) -> bytes:
    """
    Compile the pubkey-variant HTLC script.

    Args:
        secret_hash: 32-byte SHA256 of the secret.
        lock_time_blocks: Relative timeout in blocks (CSV operand).
        recipient_pubkey: 33-byte key that may claim with the secret.
        sender_pubkey: 33-byte key that may refund after the timeout.

    Returns:
        Witness script bytes.

    Raises:
        InvalidScriptParamsError: If any parameter is malformed.
    """
    secret_hash = to_fixed_bytes(secret_hash, SECRET_HASH_SIZE, "secret_hash")
    lock_time_blocks = validate_lock_time(lock_time_blocks)
    recipient = _to_pubkey(recipient_pubkey, "recipient_pubkey")
    sender = _to_pubkey(sender_pubkey, "sender_pubkey")

    script = bytes([OP_IF, OP_SHA256])
    script += push_data(secret_hash)
    script += bytes([OP_EQUALVERIFY])
    script += push_data(recipient)
    script += bytes([OP_CHECKSIG, OP_ELSE])
    script += push_int(lock_time_blocks)
    script += bytes([OP_CHECKSEQUENCEVERIFY, OP_DROP])
    script += push_data(sender)
    script += bytes([OP_CHECKSIG, OP_ENDIF])
    return script


def compile_pubkey_hash_hashlock_script(
    secret_hash: BytesLike,
    lock_time_blocks: int,
    recipient_pubkey_hash: BytesLike
) -> bytes:
    """
    Compile the pubkey-hash-variant HTLC script.

    Both branches fall through to the same P2PKH-style check, so the
    spending path is picked only by which witness items are supplied.
    """
    secret_hash = to_fixed_bytes(secret_hash, SECRET_HASH_SIZE, "secret_hash")
    lock_time_blocks = validate_lock_time(lock_time_blocks)
    pubkey_hash = to_fixed_bytes(recipient_pubkey_hash, PUBKEY_HASH_SIZE, "recipient_pubkey_hash")

    script = bytes([OP_IF, OP_SHA256])
    script += push_data(secret_hash)
    script += bytes([OP_EQUALVERIFY, OP_ELSE])
    script += push_int(lock_time_blocks)
    script += bytes([OP_CHECKSEQUENCEVERIFY, OP_DROP, OP_ENDIF])
    script += bytes([OP_DUP, OP_HASH160])
    script += push_data(pubkey_hash)
    script += bytes([OP_EQUALVERIFY, OP_CHECKSIG])
    return script


# =============================================================================
# Typed parameters
# =============================================================================

@dataclass(frozen=True)
class PubkeyHtlc:
    """HTLC parameters for the explicit recipient/sender key variant."""
    secret_hash: bytes
    lock_time_blocks: int
    recipient_pubkey: bytes
    sender_pubkey: bytes

    def compile(self) -> bytes:
        return compile_hashlock_script(
            self.secret_hash, self.lock_time_blocks,
            self.recipient_pubkey, self.sender_pubkey
        )

    @property
    def needs_pubkey_in_witness(self) -> bool:
        return False


@dataclass(frozen=True)
class PubkeyHashHtlc:
    """HTLC parameters for the shared pubkey-hash variant."""
    secret_hash: bytes
    lock_time_blocks: int
    pubkey_hash: bytes

    def compile(self) -> bytes:
        return compile_pubkey_hash_hashlock_script(
            self.secret_hash, self.lock_time_blocks, self.pubkey_hash
        )

    @property
    def needs_pubkey_in_witness(self) -> bool:
        return True


HtlcParams = Union[PubkeyHtlc, PubkeyHashHtlc]


def to_script(script: Union[bytes, str, Script]) -> Script:
    """Wrap raw or hex script bytes as an embit Script."""
    if isinstance(script, Script):
        return script
    if isinstance(script, str):
        script = bytes.fromhex(script)
    return Script(script)


# =============================================================================
# Parsing
# =============================================================================

def iter_script(script: bytes) -> Iterator[Tuple[int, Optional[bytes]]]:
    """
    Tokenize a script into (opcode, pushed data) pairs.

    Data is None for non-push opcodes.

    Raises:
        ValueError: If a push runs past the end of the script.
    """
    i = 0
    while i < len(script):
        op = script[i]
        i += 1
        if op == OP_0:
            yield op, b""
            continue
        if op < OP_PUSHDATA1:
            size = op
        elif op == OP_PUSHDATA1:
            size = script[i] if i < len(script) else 0
            i += 1
        elif op == OP_PUSHDATA2:
            size = struct.unpack('<H', script[i:i + 2])[0] if i + 2 <= len(script) else 0
            i += 2
        elif op == OP_PUSHDATA4:
            size = struct.unpack('<I', script[i:i + 4])[0] if i + 4 <= len(script) else 0
            i += 4
        else:
            yield op, None
            continue
        if i + size > len(script):
            raise ValueError("Push past end of script")
        yield op, script[i:i + size]
        i += size


def _token_int(op: int, data: Optional[bytes]) -> int:
    if OP_1 <= op <= OP_16:
        return op - OP_1 + 1
    if data is None:
        raise ValueError(f"Expected a number, got opcode {op:#x}")
    return decode_script_num(data)


def parse_htlc_script(script: Union[bytes, str]) -> HtlcParams:
    """
    Recover HTLC parameters from a compiled script.

    Only the two exact templates built by this module are recognized.

    Raises:
        InvalidScriptParamsError: If the script matches neither template.
    """
    if isinstance(script, str):
        script = bytes.fromhex(script)
    try:
        tokens = list(iter_script(script))
        ops = [op for op, _ in tokens]
        if (len(tokens) == 13 and ops[:3] == [OP_IF, OP_SHA256, 32]
                and ops[3:6] == [OP_EQUALVERIFY, 33, OP_CHECKSIG] and ops[6] == OP_ELSE
                and ops[8:] == [OP_CHECKSEQUENCEVERIFY, OP_DROP, 33, OP_CHECKSIG, OP_ENDIF]):
            params = PubkeyHtlc(
                secret_hash=tokens[2][1],
                lock_time_blocks=_token_int(*tokens[7]),
                recipient_pubkey=tokens[4][1],
                sender_pubkey=tokens[10][1],
            )
        elif (len(tokens) == 14 and ops[:5] == [OP_IF, OP_SHA256, 32, OP_EQUALVERIFY, OP_ELSE]
                and ops[6:] == [OP_CHECKSEQUENCEVERIFY, OP_DROP, OP_ENDIF,
                                OP_DUP, OP_HASH160, 20, OP_EQUALVERIFY, OP_CHECKSIG]):
            params = PubkeyHashHtlc(
                secret_hash=tokens[2][1],
                lock_time_blocks=_token_int(*tokens[5]),
                pubkey_hash=tokens[11][1],
            )
        else:
            raise ValueError("Script does not match an HTLC template")
    except ValueError as e:
        raise InvalidScriptParamsError(str(e), {"script": script.hex()})

    # Only canonical encodings round-trip
    if params.compile() != script:
        raise InvalidScriptParamsError("Script is not canonically encoded", {"script": script.hex()})
    return params
