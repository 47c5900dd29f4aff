"""
HTLC SDK - Data Models

Core data structures used throughout the SDK.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any
from enum import Enum

from .constants import HTLC_OUTPUT_INDEX


class SwapState(Enum):
    """Lifecycle of a single HTLC output."""
    CREATED = "created"
    FUNDED = "funded"
    CLAIMED = "claimed"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self in (SwapState.CLAIMED, SwapState.REFUNDED)


# Allowed forward transitions; terminal states have none
SWAP_TRANSITIONS: Dict[SwapState, tuple] = {
    SwapState.CREATED: (SwapState.FUNDED,),
    SwapState.FUNDED: (SwapState.CLAIMED, SwapState.REFUNDED),
    SwapState.CLAIMED: (),
    SwapState.REFUNDED: (),
}


class HtlcVariant(Enum):
    """Which locking script family an HTLC uses."""
    PUBKEY = "pubkey"
    PUBKEY_HASH = "pubkey_hash"


@dataclass
class UTXO:
    """Unspent Transaction Output."""
    txid: str
    vout: int
    value: int  # satoshis
    script_pubkey: Optional[str] = None

    @property
    def outpoint(self) -> str:
        """Return txid:vout format."""
        return f"{self.txid}:{self.vout}"

    def to_dict(self) -> dict:
        return {"txid": self.txid, "vout": self.vout, "value": self.value,
                "script_pubkey": self.script_pubkey}


@dataclass
class FundingTransaction:
    """A signed funding transaction, ready for broadcast."""
    txid: str
    raw_hex: str
    inputs: List[UTXO]
    amount_sats: int
    fee_sats: int
    change_sats: int = 0
    htlc_output_index: int = HTLC_OUTPUT_INDEX

    @property
    def total_input(self) -> int:
        return sum(utxo.value for utxo in self.inputs)

    @property
    def has_change(self) -> bool:
        return self.change_sats > 0


@dataclass
class SwapDescriptor:
    """
    Public description of a deployed HTLC, handed to the counterparty.

    Contains no private material.
    """
    txid: str
    vout: int
    address: str
    locker_pubkey: str
    secret_hash: str
    lock_time_blocks: int = 0
    amount_sats: int = 0
    redeem_script: str = ""

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SwapDescriptor":
        return cls(**data)


@dataclass
class Swap:
    """Wallet-side record of a swap and where it is in its lifecycle."""
    descriptor: SwapDescriptor
    variant: HtlcVariant = HtlcVariant.PUBKEY
    state: SwapState = SwapState.CREATED
    redeem_txid: Optional[str] = None
    history: List[SwapState] = field(default_factory=list)

    def __post_init__(self):
        if not self.history:
            self.history.append(self.state)

    @property
    def outpoint(self) -> str:
        return self.descriptor.outpoint

    def can_transition(self, target: SwapState) -> bool:
        return target in SWAP_TRANSITIONS[self.state]


class SpendPath(Enum):
    """HTLC spending branches."""
    CLAIM = "claim"      # secret reveal
    REFUND = "refund"    # relative timeout


@dataclass
class RedemptionTransaction:
    """A signed claim or refund transaction, ready for broadcast."""
    txid: str
    raw_hex: str
    path: SpendPath
    funding_outpoint: str
    locked_amount_sats: int
    fee_sats: int

    @property
    def output_sats(self) -> int:
        return self.locked_amount_sats - self.fee_sats
