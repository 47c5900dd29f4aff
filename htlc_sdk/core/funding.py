"""
HTLC SDK - Funding Transaction Builder

Assembles, signs and serializes the transaction that locks funds into an
HTLC output.

Output layout:
- Output 0: HTLC (P2WSH)
- Output 1: Change back to the funder (only above the dust threshold)
"""

import logging
from typing import TYPE_CHECKING, Sequence, Tuple

from embit.script import Script, Witness, p2pkh
from embit.transaction import (
    SIGHASH,
    Transaction,
    TransactionInput,
    TransactionOutput,
)
from embit import ec

from ..constants import DUST_THRESHOLD_SATS, HTLC_OUTPUT_INDEX, SEQUENCE_FINAL
from ..errors import (
    InsufficientFundsError,
    NoUtxosFoundError,
    OutputIndexError,
    TransactionError,
    UnsupportedInputError,
)
from ..models import UTXO, FundingTransaction
from ..infra.node import NodeClient
from .address import address_to_script_pubkey
from .script import push_data
from .signature import encode_script_signature

if TYPE_CHECKING:
    from ..providers import KeyProvider

log = logging.getLogger(__name__)


class FundingTxBuilder:
    """
    Builds signed funding transactions.

    Every input's previous transaction is fetched from the node so the
    spent output's script and value come from the chain, not from the
    UTXO listing.
    """

    def __init__(self, node: NodeClient, dust_threshold: int = DUST_THRESHOLD_SATS):
        """
        Initialize funding builder.

        Args:
            node: Node client used to fetch previous transactions.
            dust_threshold: Change at or below this value is left as fee.
        """
        self.node = node
        self.dust_threshold = dust_threshold

    def fetch_previous_output(self, utxo: UTXO) -> TransactionOutput:
        """
        Fetch and check the output a UTXO refers to.

        Raises:
            TransactionError: If the node's transaction does not match the
                UTXO (wrong txid, missing vout or different value).
        """
        raw = self.node.get_raw_transaction(utxo.txid)
        prev_tx = Transaction.parse(bytes.fromhex(raw))
        if prev_tx.txid().hex() != utxo.txid:
            raise TransactionError(
                "Previous transaction does not match UTXO txid",
                {"expected": utxo.txid, "actual": prev_tx.txid().hex()}
            )
        if utxo.vout >= len(prev_tx.vout):
            raise TransactionError(f"Output {utxo.outpoint} does not exist", {"outpoint": utxo.outpoint})
        prev_out = prev_tx.vout[utxo.vout]
        if prev_out.value != utxo.value:
            raise TransactionError(
                "UTXO value does not match previous transaction",
                {"outpoint": utxo.outpoint, "listed": utxo.value, "actual": prev_out.value}
            )
        return prev_out

    def build_and_sign(
        self,
        selected_utxos: Sequence[UTXO],
        htlc_address: str,
        amount_sats: int,
        change_address: str,
        fee_sats: int,
        signer: "KeyProvider"
    ) -> FundingTransaction:
        """
        Build and sign a funding transaction.

        The HTLC output is added before any change output, so it always
        sits at index 0.

        Args:
            selected_utxos: Inputs chosen by `select_inputs`.
            htlc_address: P2WSH address of the HTLC.
            amount_sats: Value locked in the HTLC.
            change_address: Where change goes.
            fee_sats: Fixed fee.
            signer: Key owning every selected input.

        Returns:
            FundingTransaction with txid and serialized hex.

        Raises:
            NoUtxosFoundError: If no inputs were given.
            InsufficientFundsError: If inputs do not cover amount + fee.
            UnsupportedInputError: If an input is not P2PKH/P2WPKH.
        """
        utxos = list(selected_utxos)
        if not utxos:
            raise NoUtxosFoundError(change_address)
        if amount_sats <= 0:
            raise TransactionError("Amount must be positive", {"amount": amount_sats})

        total_input = sum(utxo.value for utxo in utxos)
        if total_input < amount_sats + fee_sats:
            raise InsufficientFundsError(required=amount_sats + fee_sats, available=total_input)

        prev_outputs = [self.fetch_previous_output(utxo) for utxo in utxos]

        tx = Transaction(
            version=2,
            vin=[
                TransactionInput(bytes.fromhex(utxo.txid), utxo.vout, sequence=SEQUENCE_FINAL)
                for utxo in utxos
            ],
            vout=[]
        )

        htlc_script_pubkey = address_to_script_pubkey(htlc_address)
        tx.vout.append(TransactionOutput(amount_sats, htlc_script_pubkey))

        change_sats = total_input - amount_sats - fee_sats
        if change_sats > self.dust_threshold:
            tx.vout.append(TransactionOutput(change_sats, address_to_script_pubkey(change_address)))
        else:
            change_sats = 0

        if tx.vout[HTLC_OUTPUT_INDEX].script_pubkey.data != htlc_script_pubkey.data:
            raise OutputIndexError(
                f"HTLC output is not at index {HTLC_OUTPUT_INDEX}",
                {"outputs": len(tx.vout)}
            )

        for index, (utxo, prev_out) in enumerate(zip(utxos, prev_outputs)):
            script_sig, witness = self._sign_input(tx, index, utxo, prev_out, signer)
            tx.vin[index].script_sig = script_sig
            tx.vin[index].witness = witness

        txid = tx.txid().hex()
        log.debug("Built funding tx %s: %d inputs, %d outputs, change %d",
                  txid, len(tx.vin), len(tx.vout), change_sats)

        return FundingTransaction(
            txid=txid,
            raw_hex=tx.serialize().hex(),
            inputs=utxos,
            amount_sats=amount_sats,
            fee_sats=total_input - amount_sats - change_sats,
            change_sats=change_sats,
            htlc_output_index=HTLC_OUTPUT_INDEX
        )

    def _sign_input(
        self,
        tx: Transaction,
        index: int,
        utxo: UTXO,
        prev_out: TransactionOutput,
        signer: "KeyProvider"
    ) -> Tuple[Script, Witness]:
        """Produce scriptSig and witness for one funding input."""
        script_type = prev_out.script_pubkey.script_type()
        if script_type not in ("p2pkh", "p2wpkh"):
            raise UnsupportedInputError(utxo.outpoint, script_type)
        if prev_out.script_pubkey.data != signer.script_pubkey(script_type).data:
            raise TransactionError(
                "Input is not owned by the signing key",
                {"outpoint": utxo.outpoint, "script_type": script_type}
            )

        pubkey = signer.public_key_bytes
        if script_type == "p2pkh":
            sighash = tx.sighash_legacy(index, prev_out.script_pubkey, SIGHASH.ALL)
            signature = encode_script_signature(signer.sign(sighash), SIGHASH.ALL)
            return Script(push_data(signature) + push_data(pubkey)), Witness([])

        # P2WPKH commits to the equivalent P2PKH script as scriptCode
        script_code = p2pkh(ec.PublicKey.parse(pubkey))
        sighash = tx.sighash_segwit(index, script_code, prev_out.value, SIGHASH.ALL)
        signature = encode_script_signature(signer.sign(sighash), SIGHASH.ALL)
        return Script(b""), Witness([signature, pubkey])
