"""
HTLC SDK - Redemption Transaction Builder

Builds the single-input transactions that spend an HTLC output, either by
revealing the secret (claim) or after the relative timeout (refund).

Both paths:
1. Create a version-2 transaction spending the HTLC outpoint
2. Pay locked amount minus fee to one output
3. Compute the BIP143 sighash with the redeem script as scriptCode
4. Sign with ECDSA, DER-encode and append SIGHASH_ALL
5. Check the encoding is canonical
6. Attach the witness stack that selects the branch
"""

import logging
from typing import TYPE_CHECKING, Optional, Union

from embit.script import Script
from embit.transaction import (
    SIGHASH,
    Transaction,
    TransactionInput,
    TransactionOutput,
)

from ..constants import (
    DUST_THRESHOLD_SATS,
    REDEEM_FEE_SATS,
    REDEEM_TX_VERSION,
    SEQUENCE_FINAL,
    SEQUENCE_LOCKTIME_MASK,
)
from ..errors import InvalidKeyError, TransactionError
from ..models import RedemptionTransaction, SpendPath
from .address import address_to_script_pubkey
from .script import (
    HtlcParams,
    PubkeyHtlc,
    parse_htlc_script,
    validate_lock_time,
)
from .signature import encode_script_signature
from .witness import ClaimWitness, RefundWitness, HtlcWitness, WitnessEncoder

if TYPE_CHECKING:
    from ..providers import KeyProvider

log = logging.getLogger(__name__)


def encode_relative_locktime(lock_time_blocks: int) -> int:
    """
    BIP68 sequence value for a block-based relative locktime.

    The disable flag and the time-type flag are both left clear.
    """
    validate_lock_time(lock_time_blocks)
    return lock_time_blocks & SEQUENCE_LOCKTIME_MASK


class RedemptionTxBuilder:
    """Builds signed claim and refund transactions for HTLC outputs."""

    def __init__(self, fee_sats: int = REDEEM_FEE_SATS, dust_threshold: int = DUST_THRESHOLD_SATS):
        self.fee_sats = fee_sats
        self.dust_threshold = dust_threshold

    # =========================================================================
    # Claim (secret reveal)
    # =========================================================================

    def build_claim_tx(
        self,
        funding_txid: str,
        funding_vout: int,
        recipient_address: str,
        secret_preimage: bytes,
        lock_time_blocks: int,
        locked_amount_sats: int,
        redeem_script: bytes,
        signer: "KeyProvider",
        fee_sats: Optional[int] = None
    ) -> RedemptionTransaction:
        """
        Build a claim transaction revealing the secret.

        The preimage is not checked against the script's secret hash here;
        callers that want to avoid a doomed broadcast use `verify_preimage`
        first (the wallet does).

        Args:
            funding_txid: Txid of the funding transaction.
            funding_vout: HTLC output index (0 for funding txs built here).
            recipient_address: Where the claimed funds go.
            secret_preimage: The secret.
            lock_time_blocks: The script's relative timeout. Unused by the
                claim branch, kept so both builders share a signature.
            locked_amount_sats: Value of the HTLC output.
            redeem_script: Compiled HTLC script.
            signer: Recipient key (or the shared key for the pubkey-hash
                variant).
            fee_sats: Override of the builder's fixed fee.

        Returns:
            Signed RedemptionTransaction.
        """
        validate_lock_time(lock_time_blocks)
        params = parse_htlc_script(redeem_script)
        self._check_signer(params, signer, SpendPath.CLAIM)

        pubkey = signer.public_key_bytes if params.needs_pubkey_in_witness else None
        return self._build(
            path=SpendPath.CLAIM,
            funding_txid=funding_txid,
            funding_vout=funding_vout,
            destination=recipient_address,
            sequence=SEQUENCE_FINAL,
            locked_amount_sats=locked_amount_sats,
            redeem_script=redeem_script,
            signer=signer,
            fee_sats=fee_sats,
            make_witness=lambda sig: ClaimWitness(sig, bytes(secret_preimage), pubkey),
        )

    # =========================================================================
    # Refund (timeout)
    # =========================================================================

    def build_refund_tx(
        self,
        funding_txid: str,
        funding_vout: int,
        refund_address: str,
        lock_time_blocks: int,
        locked_amount_sats: int,
        redeem_script: bytes,
        signer: "KeyProvider",
        fee_sats: Optional[int] = None
    ) -> RedemptionTransaction:
        """
        Build a refund transaction for after the timeout.

        The input's sequence encodes `lock_time_blocks` as a BIP68 relative
        locktime. Maturity is not checked locally; the network rejects the
        transaction until enough blocks have passed since funding confirmed.
        """
        sequence = encode_relative_locktime(lock_time_blocks)
        params = parse_htlc_script(redeem_script)
        self._check_signer(params, signer, SpendPath.REFUND)

        pubkey = signer.public_key_bytes if params.needs_pubkey_in_witness else None
        return self._build(
            path=SpendPath.REFUND,
            funding_txid=funding_txid,
            funding_vout=funding_vout,
            destination=refund_address,
            sequence=sequence,
            locked_amount_sats=locked_amount_sats,
            redeem_script=redeem_script,
            signer=signer,
            fee_sats=fee_sats,
            make_witness=lambda sig: RefundWitness(sig, pubkey),
        )

    # =========================================================================
    # Shared machinery
    # =========================================================================

    @staticmethod
    def _check_signer(params: HtlcParams, signer: "KeyProvider", path: SpendPath) -> None:
        """Make sure the signer is the key the chosen branch checks."""
        if isinstance(params, PubkeyHtlc):
            expected = params.recipient_pubkey if path == SpendPath.CLAIM else params.sender_pubkey
            if signer.public_key_bytes != expected:
                raise InvalidKeyError(
                    f"Signer cannot spend the {path.value} branch",
                    {"expected_pubkey": expected.hex(), "signer_pubkey": signer.public_key}
                )
        elif signer.public_key_hash != params.pubkey_hash:
            raise InvalidKeyError(
                "Signer does not match the script's public key hash",
                {"expected_hash": params.pubkey_hash.hex()}
            )

    def _build(
        self,
        path: SpendPath,
        funding_txid: str,
        funding_vout: int,
        destination: str,
        sequence: int,
        locked_amount_sats: int,
        redeem_script: Union[bytes, str],
        signer: "KeyProvider",
        fee_sats: Optional[int],
        make_witness,
    ) -> RedemptionTransaction:
        if isinstance(redeem_script, str):
            redeem_script = bytes.fromhex(redeem_script)
        fee = self.fee_sats if fee_sats is None else fee_sats
        output_sats = locked_amount_sats - fee
        if output_sats <= self.dust_threshold:
            raise TransactionError(
                "Redemption output would be dust",
                {"locked": locked_amount_sats, "fee": fee, "dust_threshold": self.dust_threshold}
            )

        tx = Transaction(
            version=REDEEM_TX_VERSION,
            vin=[TransactionInput(bytes.fromhex(funding_txid), funding_vout, sequence=sequence)],
            vout=[TransactionOutput(output_sats, address_to_script_pubkey(destination))],
            locktime=0
        )

        sighash = tx.sighash_segwit(0, Script(redeem_script), locked_amount_sats, SIGHASH.ALL)
        signature = encode_script_signature(signer.sign(sighash), SIGHASH.ALL)

        witness: HtlcWitness = make_witness(signature)
        tx.vin[0].witness = WitnessEncoder.encode(witness, redeem_script)

        txid = tx.txid().hex()
        log.debug("Built %s tx %s spending %s:%d", path.value, txid, funding_txid, funding_vout)
        return RedemptionTransaction(
            txid=txid,
            raw_hex=tx.serialize().hex(),
            path=path,
            funding_outpoint=f"{funding_txid}:{funding_vout}",
            locked_amount_sats=locked_amount_sats,
            fee_sats=fee,
        )
