"""
HTLC SDK - Witness Encoder

Builds the witness stacks that select an HTLC spending path.

Stack layout (bottom to top, redeem script last):

    Claim:  <sig> [<pubkey>] <secret> 0x01 <redeem_script>
    Refund: <sig> [<pubkey>] <>            <redeem_script>

The pubkey element is only present for the pubkey-hash variant, whose
shared OP_DUP OP_HASH160 check needs the key on the stack.
"""

from dataclasses import dataclass
from typing import List, Optional, Union

from embit.script import Witness

from ..constants import CLAIM_BRANCH_SELECTOR, REFUND_BRANCH_SELECTOR
from .signature import ensure_canonical


@dataclass(frozen=True)
class ClaimWitness:
    """Secret-reveal path witness."""
    signature: bytes
    secret: bytes
    pubkey: Optional[bytes] = None

    def items(self) -> List[bytes]:
        stack = [self.signature]
        if self.pubkey is not None:
            stack.append(self.pubkey)
        stack += [self.secret, CLAIM_BRANCH_SELECTOR]
        return stack


@dataclass(frozen=True)
class RefundWitness:
    """Timeout path witness."""
    signature: bytes
    pubkey: Optional[bytes] = None

    def items(self) -> List[bytes]:
        stack = [self.signature]
        if self.pubkey is not None:
            stack.append(self.pubkey)
        stack.append(REFUND_BRANCH_SELECTOR)
        return stack


HtlcWitness = Union[ClaimWitness, RefundWitness]


class WitnessEncoder:
    """Serializes HTLC witnesses into embit witness stacks."""

    @staticmethod
    def stack(witness: HtlcWitness, redeem_script: bytes) -> List[bytes]:
        """
        Full witness stack, with the redeem script as the last item.

        The signature is re-checked for canonical DER before encoding.
        """
        ensure_canonical(witness.signature)
        return witness.items() + [redeem_script]

    @classmethod
    def encode(cls, witness: HtlcWitness, redeem_script: bytes) -> Witness:
        """Build an embit Witness ready to attach to a transaction input."""
        return Witness(cls.stack(witness, redeem_script))
