"""
HTLC SDK - Node Client Interface

The SDK reaches the Bitcoin network only through this interface.
"""

from abc import ABC, abstractmethod
from typing import List

from ..models import UTXO


class NodeClient(ABC):
    """
    Minimal node surface used by the HTLC engine.

    Implementations must raise `NotConnectedError` when the node cannot be
    reached and `BroadcastError` when a transaction is rejected.
    """

    @abstractmethod
    def get_utxos(self, address: str) -> List[UTXO]:
        """Unspent outputs paying to an address, in node order."""
        pass

    @abstractmethod
    def get_raw_transaction(self, txid: str) -> str:
        """Full serialized transaction as hex."""
        pass

    @abstractmethod
    def broadcast_transaction(self, raw_hex: str) -> str:
        """Submit a transaction and return its txid."""
        pass

    @abstractmethod
    def get_block_count(self) -> int:
        pass

    def get_balance(self, address: str) -> int:
        """Total balance for an address in satoshis."""
        return sum(utxo.value for utxo in self.get_utxos(address))
