"""
HTLC SDK - Script Verifier

A small reference interpreter for P2WSH inputs spending HTLC scripts.

Only the opcodes the HTLC templates use are implemented, with the
standardness rules that apply to witness v0 scripts (MINIMALIF, NULLFAIL,
strict DER, low S, compressed keys, clean stack). Anything else fails.
"""

import logging
from typing import List, Optional, Union

from embit import ec, hashes
from embit.script import Script
from embit.transaction import Transaction

from ..constants import (
    SEQUENCE_LOCKTIME_DISABLE_FLAG,
    SEQUENCE_LOCKTIME_TYPE_FLAG,
    SEQUENCE_LOCKTIME_MASK,
    COMPRESSED_PUBKEY_SIZE,
)
from ..errors import InvalidSignatureError, ScriptVerificationError
from .script import (
    OP_0,
    OP_1,
    OP_16,
    OP_1NEGATE,
    OP_IF,
    OP_NOTIF,
    OP_ELSE,
    OP_ENDIF,
    OP_DROP,
    OP_DUP,
    OP_EQUAL,
    OP_EQUALVERIFY,
    OP_SHA256,
    OP_HASH160,
    OP_CHECKSIG,
    OP_CHECKSEQUENCEVERIFY,
    OP_PUSHDATA4,
    iter_script,
    encode_script_num,
    decode_script_num,
)
from .signature import ensure_canonical

log = logging.getLogger(__name__)

OP_VERIFY = 0x69

MAX_ELEMENT_SIZE = 520


def cast_to_bool(item: bytes) -> bool:
    """Script truthiness: any non-zero byte, except negative zero."""
    for i, byte in enumerate(item):
        if byte != 0:
            return not (i == len(item) - 1 and byte == 0x80)
    return False


class ScriptVerifier:
    """
    Evaluates the witness of one transaction input.

    Example:
        verifier = ScriptVerifier(tx, input_index=0, amount_sats=100000)
        verifier.verify_p2wsh(p2wsh_script_pubkey(redeem_script))
    """

    def __init__(self, tx: Transaction, input_index: int, amount_sats: int):
        """
        Args:
            tx: Spending transaction with its witness attached.
            input_index: Input to check.
            amount_sats: Value of the output being spent (BIP143 commits to it).
        """
        if not 0 <= input_index < len(tx.vin):
            raise ScriptVerificationError("input index out of range", input_index)
        self.tx = tx
        self.input_index = input_index
        self.amount_sats = amount_sats

    def _fail(self, reason: str) -> ScriptVerificationError:
        return ScriptVerificationError(reason, self.input_index)

    # =========================================================================
    # Entry points
    # =========================================================================

    def verify_p2wsh(self, script_pubkey: Optional[Script] = None) -> None:
        """
        Verify the input's witness as a P2WSH spend.

        Args:
            script_pubkey: Output being spent. When given, the witness script
                must hash to its witness program.

        Raises:
            ScriptVerificationError: On any failure.
        """
        items = list(self.tx.vin[self.input_index].witness.items)
        if not items:
            raise self._fail("empty witness")
        witness_script = items[-1]
        stack = items[:-1]

        if script_pubkey is not None:
            data = script_pubkey.data
            if len(data) != 34 or data[0] != OP_0 or data[1] != 32:
                raise self._fail("output is not P2WSH")
            if hashes.sha256(witness_script) != data[2:]:
                raise self._fail("witness script does not match witness program")

        if any(len(item) > MAX_ELEMENT_SIZE for item in stack):
            raise self._fail("stack element too large")

        final = self.evaluate(witness_script, stack)
        if len(final) != 1:
            raise self._fail(f"stack not clean ({len(final)} items)")
        if not cast_to_bool(final[0]):
            raise self._fail("script evaluated to false")

    def evaluate(self, script: bytes, stack: List[bytes]) -> List[bytes]:
        """
        Run a script over an initial stack.

        Returns:
            The final stack.
        """
        stack = list(stack)
        exec_stack: List[bool] = []
        try:
            tokens = list(iter_script(script))
        except ValueError as e:
            raise self._fail(str(e))

        for op, data in tokens:
            executing = all(exec_stack)

            if op in (OP_IF, OP_NOTIF):
                value = False
                if executing:
                    top = self._pop(stack)
                    if top not in (b"", b"\x01"):
                        raise self._fail("MINIMALIF: IF argument must be empty or 0x01")
                    value = cast_to_bool(top)
                    if op == OP_NOTIF:
                        value = not value
                exec_stack.append(value)
                continue
            if op == OP_ELSE:
                if not exec_stack:
                    raise self._fail("OP_ELSE without OP_IF")
                exec_stack[-1] = not exec_stack[-1]
                continue
            if op == OP_ENDIF:
                if not exec_stack:
                    raise self._fail("OP_ENDIF without OP_IF")
                exec_stack.pop()
                continue
            if not executing:
                continue

            if data is not None and op <= OP_PUSHDATA4:
                stack.append(data)
            elif op == OP_1NEGATE:
                stack.append(encode_script_num(-1))
            elif OP_1 <= op <= OP_16:
                stack.append(encode_script_num(op - OP_1 + 1))
            elif op == OP_DROP:
                self._pop(stack)
            elif op == OP_DUP:
                stack.append(self._peek(stack))
            elif op in (OP_EQUAL, OP_EQUALVERIFY):
                b, a = self._pop(stack), self._pop(stack)
                if op == OP_EQUALVERIFY:
                    if a != b:
                        raise self._fail("OP_EQUALVERIFY failed")
                else:
                    stack.append(b"\x01" if a == b else b"")
            elif op == OP_VERIFY:
                if not cast_to_bool(self._pop(stack)):
                    raise self._fail("OP_VERIFY failed")
            elif op == OP_SHA256:
                stack.append(hashes.sha256(self._pop(stack)))
            elif op == OP_HASH160:
                stack.append(hashes.hash160(self._pop(stack)))
            elif op == OP_CHECKSIG:
                pubkey, signature = self._pop(stack), self._pop(stack)
                stack.append(b"\x01" if self._check_sig(signature, pubkey, script) else b"")
            elif op == OP_CHECKSEQUENCEVERIFY:
                self._check_sequence(self._peek(stack))
            else:
                raise self._fail(f"unsupported opcode {op:#x}")

        if exec_stack:
            raise self._fail("unbalanced conditional")
        return stack

    # =========================================================================
    # Opcode helpers
    # =========================================================================

    def _pop(self, stack: List[bytes]) -> bytes:
        if not stack:
            raise self._fail("stack underflow")
        return stack.pop()

    def _peek(self, stack: List[bytes]) -> bytes:
        if not stack:
            raise self._fail("stack underflow")
        return stack[-1]

    def _check_sig(self, signature: bytes, pubkey: bytes, script: bytes) -> bool:
        if not signature:
            return False
        try:
            ensure_canonical(signature)
        except InvalidSignatureError as e:
            raise self._fail(e.message)
        if len(pubkey) != COMPRESSED_PUBKEY_SIZE or pubkey[0] not in (0x02, 0x03):
            raise self._fail("public key is not compressed")

        sighash = self.tx.sighash_segwit(
            self.input_index, Script(script), self.amount_sats, signature[-1]
        )
        try:
            valid = ec.PublicKey.parse(pubkey).verify(ec.Signature.parse(signature[:-1]), sighash)
        except (ValueError, ec.ECError) as e:
            raise self._fail(f"malformed key or signature: {e}")
        if not valid:
            # NULLFAIL: a failing non-empty signature aborts the script
            raise self._fail("signature verification failed")
        return True

    def _check_sequence(self, operand: bytes) -> None:
        """BIP112 CHECKSEQUENCEVERIFY against the input's nSequence."""
        try:
            lock = decode_script_num(operand, max_size=5)
        except ValueError as e:
            raise self._fail(str(e))
        if lock < 0:
            raise self._fail("negative relative locktime")
        if lock & SEQUENCE_LOCKTIME_DISABLE_FLAG:
            return

        if self.tx.version < 2:
            raise self._fail("relative locktime requires transaction version 2")
        sequence = self.tx.vin[self.input_index].sequence
        if sequence & SEQUENCE_LOCKTIME_DISABLE_FLAG:
            raise self._fail("input sequence disables relative locktime")

        mask = SEQUENCE_LOCKTIME_TYPE_FLAG | SEQUENCE_LOCKTIME_MASK
        lock_masked = lock & mask
        sequence_masked = sequence & mask
        if (lock_masked < SEQUENCE_LOCKTIME_TYPE_FLAG) != (sequence_masked < SEQUENCE_LOCKTIME_TYPE_FLAG):
            raise self._fail("relative locktime type mismatch")
        if lock_masked > sequence_masked:
            raise self._fail(
                f"relative locktime not satisfied ({sequence_masked & SEQUENCE_LOCKTIME_MASK} < "
                f"{lock_masked & SEQUENCE_LOCKTIME_MASK})"
            )


def verify_redemption(
    raw_hex: Union[str, bytes],
    amount_sats: int,
    script_pubkey: Optional[Script] = None,
    input_index: int = 0
) -> None:
    """
    Verify a serialized claim or refund transaction.

    Raises:
        ScriptVerificationError: If the witness does not satisfy the script.
    """
    raw = bytes.fromhex(raw_hex) if isinstance(raw_hex, str) else raw_hex
    tx = Transaction.parse(raw)
    ScriptVerifier(tx, input_index, amount_sats).verify_p2wsh(script_pubkey)
    log.debug("Input %d of %s verified", input_index, tx.txid().hex())
