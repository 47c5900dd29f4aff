"""
HTLC SDK - Wallet

High-level interface for HTLC swaps.
This is the primary entry point for SDK users.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from embit import hashes
from embit.transaction import Transaction

from .config import NetworkConfig
from .constants import COMPRESSED_PUBKEY_SIZE, HTLC_OUTPUT_INDEX, PUBKEY_HASH_SIZE
from .core.address import (
    derive_p2wsh_address,
    p2wsh_script_pubkey,
    public_key_hash_from_address,
)
from .core.funding import FundingTxBuilder
from .core.redemption import RedemptionTxBuilder
from .core.reservation import UtxoReservation
from .core.script import (
    PubkeyHtlc,
    compile_hashlock_script,
    compile_pubkey_hash_hashlock_script,
    parse_htlc_script,
)
from .core.secret import hash_secret, verify_preimage
from .core.selection import select_inputs
from .core.verifier import verify_redemption
from .errors import (
    InvalidScriptParamsError,
    ScriptVerificationError,
    SwapNotFoundError,
    SwapStateError,
    TransactionError,
)
from .events import EventEmitter, EventType
from .infra.node import NodeClient
from .logging import StructuredLogger
from .models import (
    FundingTransaction,
    HtlcVariant,
    RedemptionTransaction,
    SpendPath,
    Swap,
    SwapDescriptor,
    SwapState,
)
from .providers import KeyProvider, MemoryKeyProvider

BytesLike = Union[bytes, str]


def _split_outpoint(outpoint: str):
    txid, sep, vout = outpoint.rpartition(":")
    if not sep or not txid or not vout.isdigit():
        raise InvalidScriptParamsError(f"Malformed outpoint: {outpoint}")
    return txid, int(vout)


def _to_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return bytes(value)


class HtlcWallet:
    """
    Wallet that funds, claims and refunds HTLC outputs.

    Key material comes from an injected KeyProvider; the wallet never reads
    key files or global state. Funding pipelines from the same wallet are
    serialized through a UTXO reservation so concurrent deploys cannot pick
    the same input.

    Example:
        wallet = HtlcWallet(EnvKeyProvider(), config=NetworkConfig.from_env())

        # Lock 100k sats for the counterparty, refundable after 144 blocks
        swap = wallet.deploy(counterparty_pubkey, secret_hash, 144, 100_000)

        # Counterparty side: claim by revealing the secret
        txid = other.redeem_with_secret(
            swap.txid, swap.vout, other.address, secret,
            swap.lock_time_blocks, swap.amount_sats,
            counterparty_pubkey=swap.locker_pubkey,
        )

        # Or, after the timeout, the funder takes the coins back
        txid = wallet.refund(swap)

        @wallet.events.on(EventType.SWAP_FUNDED)
        def announce(event):
            publish(event.data["descriptor"])
    """

    def __init__(
        self,
        key_provider: KeyProvider,
        node: Optional[NodeClient] = None,
        config: Optional[NetworkConfig] = None,
        logger: Optional[logging.Logger] = None,
        events: Optional[EventEmitter] = None,
        address_kind: str = "p2pkh"
    ):
        """
        Initialize wallet.

        Args:
            key_provider: Signs funding inputs and redemptions.
            node: Node client (built from config if None).
            config: Network and fee settings (regtest defaults if None).
            logger: Optional Python logger for structured logging.
            events: Optional event emitter (a private one is created if None).
            address_kind: "p2pkh" or "p2wpkh" for the wallet's own address.
        """
        self.config = config or NetworkConfig()
        self.key_provider = key_provider
        self.node = node or self.config.create_node_client()
        self.address_kind = address_kind

        self.logger = StructuredLogger(component="htlc-wallet", logger=logger)
        self.events = events or EventEmitter(logger)

        self._funding = FundingTxBuilder(self.node, self.config.dust_threshold_sats)
        self._redemption = RedemptionTxBuilder(
            fee_sats=self.config.redeem_fee_sats,
            dust_threshold=self.config.dust_threshold_sats
        )
        self._reservation = UtxoReservation()
        self._swaps: Dict[str, Swap] = {}
        self._registry_lock = threading.Lock()

        self._address = key_provider.address(self.config.network, address_kind)

    @classmethod
    def generate(cls, node: Optional[NodeClient] = None, config: Optional[NetworkConfig] = None, **kwargs) -> "HtlcWallet":
        """Create a wallet around a fresh in-memory key (testing)."""
        config = config or NetworkConfig()
        return cls(MemoryKeyProvider.generate(config.network), node=node, config=config, **kwargs)

    @classmethod
    def from_config(cls, config_path: Union[str, Path], key_provider: KeyProvider, **kwargs) -> "HtlcWallet":
        """Create a wallet from a network_config.json file."""
        return cls(key_provider, config=NetworkConfig.from_file(str(config_path)), **kwargs)

    # =========================================================================
    # Identity
    # =========================================================================

    @property
    def address(self) -> str:
        """Funding and change address of this wallet."""
        return self._address

    @property
    def public_key(self) -> str:
        return self.key_provider.public_key

    def get_balance(self) -> int:
        """Confirmed plus unconfirmed balance of the wallet address in sats."""
        return self.node.get_balance(self.address)

    # =========================================================================
    # Funding
    # =========================================================================

    def send(self, to_address: str, amount_sats: int) -> str:
        """
        Pay an address from the wallet's UTXOs.

        Returns:
            Broadcast txid.
        """
        with self.logger.operation("send", amount_sats=amount_sats) as op:
            funding = self._fund(to_address, amount_sats)
            op.set_txid(funding.txid)
        return funding.txid

    def _fund(self, to_address: str, amount_sats: int) -> FundingTransaction:
        """
        Select, sign and broadcast under the wallet's reservation.

        Inputs are released again if anything fails before the node accepts
        the transaction.
        """
        fee = self.config.funding_fee_sats
        with self._reservation.hold():
            utxos = self._reservation.available(self.node.get_utxos(self.address))
            selected = select_inputs(utxos, amount_sats, fee, self.address)
            self._reservation.reserve(selected)
            try:
                self.events.emit(EventType.BEFORE_SIGN, {
                    "address": to_address,
                    "amount_sats": amount_sats,
                    "inputs": [utxo.outpoint for utxo in selected],
                })
                funding = self._funding.build_and_sign(
                    selected_utxos=selected,
                    htlc_address=to_address,
                    amount_sats=amount_sats,
                    change_address=self.address,
                    fee_sats=fee,
                    signer=self.key_provider
                )
                self.events.emit(EventType.AFTER_SIGN, {"txid": funding.txid})
                self.events.emit(EventType.BEFORE_BROADCAST, {"txid": funding.txid, "tx_hex": funding.raw_hex})
                txid = self.node.broadcast_transaction(funding.raw_hex)
            except Exception:
                self._reservation.release(selected)
                raise
            self._reservation.commit(selected, funding.txid)

        if txid != funding.txid:
            self.logger.warning("Node reported a different txid", txid=funding.txid, node_txid=txid)
        self.events.emit(EventType.AFTER_BROADCAST, {"txid": funding.txid})
        return funding

    # =========================================================================
    # Swap Operations
    # =========================================================================

    def deploy(
        self,
        recipient_pubkey: BytesLike,
        secret_hash: BytesLike,
        lock_time_blocks: int,
        amount_sats: int,
        variant: HtlcVariant = HtlcVariant.PUBKEY
    ) -> SwapDescriptor:
        """
        Compile an HTLC, fund it and broadcast the funding transaction.

        Args:
            recipient_pubkey: Counterparty key material. A compressed public
                key for the pubkey variant; for the pubkey-hash variant also
                a 20-byte hash or a P2PKH/P2WPKH address.
            secret_hash: 32-byte SHA256 of the secret (bytes or hex).
            lock_time_blocks: Relative timeout after which this wallet may
                refund.
            amount_sats: Value locked in the HTLC.
            variant: Script family.

        Returns:
            SwapDescriptor with the funding outpoint (vout is always 0).

        Raises:
            InvalidScriptParamsError: Before any UTXO is touched, if the
                script parameters are malformed or
                `amount_sats` could not pay for a claim or refund above
                the dust threshold.
            NoUtxosFoundError, InsufficientFundsError: From selection.
            BroadcastError, NotConnectedError: From the node.
        """
        minimum = self.config.redeem_fee_sats + self.config.dust_threshold_sats
        if amount_sats <= minimum:
            raise InvalidScriptParamsError(
                f"Amount must exceed {minimum} sats so the HTLC can be redeemed",
                {"amount_sats": amount_sats, "redeem_fee_sats": self.config.redeem_fee_sats,
                 "dust_threshold_sats": self.config.dust_threshold_sats}
            )
        if variant == HtlcVariant.PUBKEY:
            script = compile_hashlock_script(
                secret_hash, lock_time_blocks, recipient_pubkey, self.key_provider.public_key_bytes
            )
        else:
            script = compile_pubkey_hash_hashlock_script(
                secret_hash, lock_time_blocks, self._pubkey_hash(recipient_pubkey)
            )
        address, _ = derive_p2wsh_address(script, self.config.network)
        params = parse_htlc_script(script)

        descriptor = SwapDescriptor(
            txid="",
            vout=HTLC_OUTPUT_INDEX,
            address=address,
            locker_pubkey=self.public_key,
            secret_hash=params.secret_hash.hex(),
            lock_time_blocks=params.lock_time_blocks,
            amount_sats=amount_sats,
            redeem_script=script.hex()
        )
        swap = Swap(descriptor=descriptor, variant=variant)
        self.events.emit(EventType.SWAP_CREATED, {"address": address, "amount_sats": amount_sats})

        with self.logger.operation("deploy", amount_sats=amount_sats, lock_time_blocks=lock_time_blocks) as op:
            funding = self._fund(address, amount_sats)
            descriptor.txid = funding.txid
            op.set_outpoint(descriptor.outpoint)
            op.set_txid(funding.txid)

        with self._registry_lock:
            self._advance(swap, SwapState.FUNDED)
            self._swaps[swap.outpoint] = swap
        self.events.emit(EventType.SWAP_FUNDED, {
            "outpoint": swap.outpoint,
            "descriptor": descriptor.to_dict(),
        })
        return descriptor

    def redeem_with_secret(
        self,
        funding_txid: str,
        funding_vout: int,
        recipient_address: str,
        secret: BytesLike,
        lock_time_blocks: int,
        amount_sats: int,
        counterparty_pubkey: Optional[BytesLike] = None,
        redeem_script: Optional[BytesLike] = None,
        secret_hash: Optional[BytesLike] = None,
        variant: HtlcVariant = HtlcVariant.PUBKEY,
        fee_sats: Optional[int] = None
    ) -> str:
        """
        Claim an HTLC output by revealing the secret.

        The script is taken from, in order: the wallet's own swap record,
        `redeem_script`, or recompiled with this wallet as recipient and
        `counterparty_pubkey` as sender (pubkey variant) or this wallet's
        key hash (pubkey-hash variant). A recompiled script uses
        `secret_hash` when given, else SHA256(secret); a wrong secret then
        shows up as a script that does not match the funding output.

        Args:
            secret: Preimage bytes. A str is treated as UTF-8 text.
            fee_sats: Claim fee (the configured redeem fee if None).

        Returns:
            Broadcast txid of the claim transaction.

        Raises:
            InvalidSecretError: If the secret does not hash to the script's
                secret hash.
            ScriptVerificationError: If the funding output or the signed
                witness fails local validation.
            SwapStateError: If the swap was already claimed or refunded.
        """
        secret_bytes = secret.encode() if isinstance(secret, str) else bytes(secret)
        outpoint = f"{funding_txid}:{funding_vout}"

        swap = self._swaps.get(outpoint)
        if swap is None:
            if redeem_script is None:
                expected_hash = _to_bytes(secret_hash) if secret_hash is not None else hash_secret(secret_bytes)
                if variant == HtlcVariant.PUBKEY:
                    if counterparty_pubkey is None:
                        raise InvalidScriptParamsError("counterparty_pubkey is required to rebuild the script")
                    redeem_script = compile_hashlock_script(
                        expected_hash, lock_time_blocks,
                        self.key_provider.public_key_bytes, counterparty_pubkey
                    )
                else:
                    redeem_script = compile_pubkey_hash_hashlock_script(
                        expected_hash, lock_time_blocks, self.key_provider.public_key_hash
                    )
            swap = self._external_swap(funding_txid, funding_vout, _to_bytes(redeem_script), amount_sats)

        script = bytes.fromhex(swap.descriptor.redeem_script)
        verify_preimage(secret_bytes, swap.descriptor.secret_hash)

        return self._redeem(
            swap,
            SpendPath.CLAIM,
            lambda: self._redemption.build_claim_tx(
                funding_txid=swap.descriptor.txid,
                funding_vout=swap.descriptor.vout,
                recipient_address=recipient_address,
                secret_preimage=secret_bytes,
                lock_time_blocks=swap.descriptor.lock_time_blocks,
                locked_amount_sats=swap.descriptor.amount_sats,
                redeem_script=script,
                signer=self.key_provider,
                fee_sats=fee_sats
            )
        )

    def refund(
        self,
        swap_ref: Union[str, SwapDescriptor],
        refund_address: Optional[str] = None,
        amount_sats: Optional[int] = None,
        redeem_script: Optional[BytesLike] = None,
        fee_sats: Optional[int] = None
    ) -> str:
        """
        Take back an HTLC output through the timeout branch.

        Args:
            swap_ref: Descriptor returned by `deploy`, or a "txid:vout"
                outpoint. Outpoints unknown to this wallet need
                `redeem_script` and `amount_sats`.
            refund_address: Destination (the wallet address if None).
            fee_sats: Refund fee (the configured redeem fee if None).

        Returns:
            Broadcast txid of the refund transaction.

        Note:
            Nodes reject the refund until `lock_time_blocks` blocks have
            been mined on top of the funding transaction.
        """
        if isinstance(swap_ref, SwapDescriptor):
            swap = self._swaps.get(swap_ref.outpoint)
            if swap is None:
                swap = self._external_swap(
                    swap_ref.txid, swap_ref.vout,
                    _to_bytes(redeem_script or swap_ref.redeem_script),
                    swap_ref.amount_sats
                )
        else:
            swap = self._swaps.get(swap_ref)
            if swap is None:
                if redeem_script is None or amount_sats is None:
                    raise SwapNotFoundError(swap_ref)
                txid, vout = _split_outpoint(swap_ref)
                swap = self._external_swap(txid, vout, _to_bytes(redeem_script), amount_sats)

        script = bytes.fromhex(swap.descriptor.redeem_script)
        return self._redeem(
            swap,
            SpendPath.REFUND,
            lambda: self._redemption.build_refund_tx(
                funding_txid=swap.descriptor.txid,
                funding_vout=swap.descriptor.vout,
                refund_address=refund_address or self.address,
                lock_time_blocks=swap.descriptor.lock_time_blocks,
                locked_amount_sats=swap.descriptor.amount_sats,
                redeem_script=script,
                signer=self.key_provider,
                fee_sats=fee_sats
            )
        )

    def _redeem(self, swap: Swap, path: SpendPath, build: Callable[[], RedemptionTransaction]) -> str:
        target = SwapState.CLAIMED if path == SpendPath.CLAIM else SwapState.REFUNDED
        if not swap.can_transition(target):
            raise SwapStateError(swap.outpoint, swap.state.value, target.value)

        descriptor = swap.descriptor
        with self.logger.operation(path.value, amount_sats=descriptor.amount_sats) as op:
            op.set_outpoint(swap.outpoint)
            script_pubkey = p2wsh_script_pubkey(bytes.fromhex(descriptor.redeem_script))
            if self.config.verify_before_broadcast:
                self._check_funding_output(descriptor)

            self.events.emit(EventType.BEFORE_SIGN, {"outpoint": swap.outpoint, "path": path.value})
            tx = build()
            self.events.emit(EventType.AFTER_SIGN, {"outpoint": swap.outpoint, "txid": tx.txid})

            if self.config.verify_before_broadcast:
                verify_redemption(tx.raw_hex, descriptor.amount_sats, script_pubkey)

            self.events.emit(EventType.BEFORE_BROADCAST, {"txid": tx.txid, "tx_hex": tx.raw_hex})
            txid = self.node.broadcast_transaction(tx.raw_hex)
            op.set_txid(txid)

        with self._registry_lock:
            # external swaps are only recorded once a redemption is accepted
            swap = self._swaps.setdefault(swap.outpoint, swap)
            self._advance(swap, target)
            swap.redeem_txid = txid
        self.events.emit(EventType.AFTER_BROADCAST, {"txid": txid})
        self.events.emit(
            EventType.SWAP_CLAIMED if path == SpendPath.CLAIM else EventType.SWAP_REFUNDED,
            {"outpoint": swap.outpoint, "txid": txid}
        )
        return txid

    def _check_funding_output(self, descriptor: SwapDescriptor) -> None:
        """Make sure the outpoint really pays `amount_sats` to the script."""
        tx = Transaction.parse(bytes.fromhex(self.node.get_raw_transaction(descriptor.txid)))
        if descriptor.vout >= len(tx.vout):
            raise TransactionError(
                f"Funding output {descriptor.outpoint} does not exist",
                {"outputs": len(tx.vout)}
            )
        output = tx.vout[descriptor.vout]
        expected = p2wsh_script_pubkey(bytes.fromhex(descriptor.redeem_script))
        if output.script_pubkey.data != expected.data:
            raise ScriptVerificationError("funding output does not commit to the redeem script")
        if output.value != descriptor.amount_sats:
            raise TransactionError(
                "Funding output value does not match the swap amount",
                {"expected": descriptor.amount_sats, "actual": output.value}
            )

    # =========================================================================
    # Registry
    # =========================================================================

    def get_swap(self, outpoint: str) -> Swap:
        """
        Raises:
            SwapNotFoundError: If this wallet has no record of the outpoint.
        """
        swap = self._swaps.get(outpoint)
        if swap is None:
            raise SwapNotFoundError(outpoint)
        return swap

    def list_swaps(self, state: Optional[SwapState] = None) -> List[Swap]:
        with self._registry_lock:
            swaps = list(self._swaps.values())
        if state is not None:
            swaps = [swap for swap in swaps if swap.state == state]
        return swaps

    def _external_swap(self, txid: str, vout: int, script: bytes, amount_sats: int) -> Swap:
        """Describe a swap funded elsewhere; it starts out FUNDED."""
        params = parse_htlc_script(script)
        address, _ = derive_p2wsh_address(script, self.config.network)
        if isinstance(params, PubkeyHtlc):
            variant = HtlcVariant.PUBKEY
            locker = params.sender_pubkey.hex()
        else:
            variant = HtlcVariant.PUBKEY_HASH
            locker = ""
        descriptor = SwapDescriptor(
            txid=txid,
            vout=vout,
            address=address,
            locker_pubkey=locker,
            secret_hash=params.secret_hash.hex(),
            lock_time_blocks=params.lock_time_blocks,
            amount_sats=amount_sats,
            redeem_script=script.hex()
        )
        return Swap(descriptor=descriptor, variant=variant, state=SwapState.FUNDED)

    @staticmethod
    def _advance(swap: Swap, target: SwapState) -> None:
        if not swap.can_transition(target):
            raise SwapStateError(swap.outpoint, swap.state.value, target.value)
        swap.state = target
        swap.history.append(target)

    def _pubkey_hash(self, key_material: BytesLike) -> bytes:
        """Turn a pubkey, a 20-byte hash or an address into a HASH160."""
        if isinstance(key_material, str):
            try:
                raw = _to_bytes(key_material)
            except ValueError:
                return public_key_hash_from_address(key_material)
        else:
            raw = bytes(key_material)
        if len(raw) == PUBKEY_HASH_SIZE:
            return raw
        if len(raw) != COMPRESSED_PUBKEY_SIZE:
            raise InvalidScriptParamsError(
                "Recipient must be a compressed public key, a 20-byte hash or an address",
                {"length": len(raw)}
            )
        return hashes.hash160(raw)

    def __repr__(self) -> str:
        return f"HtlcWallet(address={self.address}, network={self.config.network})"
