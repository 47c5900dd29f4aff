"""
HTLC SDK Test Configuration

Shared fixtures and test utilities.
"""

import itertools
import threading
from typing import Dict, List

import pytest
from embit.script import address_to_scriptpubkey
from embit.transaction import Transaction, TransactionInput, TransactionOutput

from htlc_sdk.config import NetworkConfig
from htlc_sdk.errors import BroadcastError, TransactionNotFoundError
from htlc_sdk.infra.node import NodeClient
from htlc_sdk.models import UTXO
from htlc_sdk.providers import MemoryKeyProvider
from htlc_sdk.wallet import HtlcWallet


# =============================================================================
# In-memory node
# =============================================================================

class FakeNode(NodeClient):
    """
    Node client backed by dictionaries.

    Broadcast transactions spend their inputs and create new outputs, so a
    whole fund -> claim/refund cycle can run without bitcoind. Set
    `list_spent` to keep reporting spent outputs, like a node whose UTXO
    index lags the mempool.
    """

    def __init__(self):
        self.transactions: Dict[str, str] = {}
        self.outputs: Dict[str, UTXO] = {}
        self.spent: set = set()
        self.broadcasts: List[str] = []
        self.list_spent = False
        self.reject_with = None
        self.block_count = 100
        self._lock = threading.Lock()
        self._coinbase_ids = itertools.count(1)

    def fund(self, address: str, value: int) -> UTXO:
        """Create a confirmed output paying `value` to `address`."""
        prev = next(self._coinbase_ids).to_bytes(32, "big")
        tx = Transaction(
            version=2,
            vin=[TransactionInput(prev, 0)],
            vout=[TransactionOutput(value, address_to_scriptpubkey(address))],
            locktime=0
        )
        self._store(tx)
        return self.outputs[f"{tx.txid().hex()}:0"]

    def _store(self, tx: Transaction) -> str:
        txid = tx.txid().hex()
        self.transactions[txid] = tx.serialize().hex()
        for vout, out in enumerate(tx.vout):
            self.outputs[f"{txid}:{vout}"] = UTXO(
                txid=txid, vout=vout, value=out.value, script_pubkey=out.script_pubkey.data.hex()
            )
        return txid

    def get_utxos(self, address: str) -> List[UTXO]:
        script_hex = address_to_scriptpubkey(address).data.hex()
        with self._lock:
            return [
                utxo for outpoint, utxo in self.outputs.items()
                if utxo.script_pubkey == script_hex and (self.list_spent or outpoint not in self.spent)
            ]

    def get_raw_transaction(self, txid: str) -> str:
        if txid not in self.transactions:
            raise TransactionNotFoundError(txid)
        return self.transactions[txid]

    def broadcast_transaction(self, raw_hex: str) -> str:
        if self.reject_with is not None:
            raise self.reject_with
        tx = Transaction.parse(bytes.fromhex(raw_hex))
        with self._lock:
            outpoints = [f"{vin.txid.hex()}:{vin.vout}" for vin in tx.vin]
            for outpoint in outpoints:
                if outpoint in self.spent:
                    raise BroadcastError("txn-mempool-conflict", tx_hex=raw_hex)
                if outpoint not in self.outputs:
                    raise BroadcastError("bad-txns-inputs-missingorspent", tx_hex=raw_hex)
            self.spent.update(outpoints)
            self.broadcasts.append(raw_hex)
            return self._store(tx)

    def get_block_count(self) -> int:
        return self.block_count


# =============================================================================
# Test Keys (DO NOT USE IN PRODUCTION)
# =============================================================================

FUNDER_KEY = "0000000000000000000000000000000000000000000000000000000000000001"
RECIPIENT_KEY = "0000000000000000000000000000000000000000000000000000000000000002"
OTHER_KEY = "0000000000000000000000000000000000000000000000000000000000000003"

# Compressed public keys of the keys above
FUNDER_PUBKEY = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
RECIPIENT_PUBKEY = "02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"


@pytest.fixture
def funder_key():
    return MemoryKeyProvider(FUNDER_KEY)


@pytest.fixture
def recipient_key():
    return MemoryKeyProvider(RECIPIENT_KEY)


@pytest.fixture
def other_key():
    return MemoryKeyProvider(OTHER_KEY)


@pytest.fixture
def funder_pubkey():
    return bytes.fromhex(FUNDER_PUBKEY)


@pytest.fixture
def recipient_pubkey():
    return bytes.fromhex(RECIPIENT_PUBKEY)


@pytest.fixture
def secret():
    return b"hello"


@pytest.fixture
def secret_hash():
    """SHA256("hello")."""
    return bytes.fromhex("2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824")


def _der_int(value: int) -> bytes:
    data = value.to_bytes((value.bit_length() + 7) // 8 or 1, "big")
    if data[0] & 0x80:
        data = b"\x00" + data
    return b"\x02" + bytes([len(data)]) + data


@pytest.fixture
def encode_der():
    """
    Build a DER signature from arbitrary (r, s), including values a signer
    would never produce (high S, out of range).
    """
    def encode(r: int, s: int) -> bytes:
        body = _der_int(r) + _der_int(s)
        return b"\x30" + bytes([len(body)]) + body
    return encode


# =============================================================================
# Node and Wallet Fixtures
# =============================================================================

@pytest.fixture
def node():
    return FakeNode()


@pytest.fixture
def config():
    return NetworkConfig(network="regtest")


@pytest.fixture
def funder(funder_key, node, config):
    """Wallet of the party that locks funds."""
    return HtlcWallet(funder_key, node=node, config=config)


@pytest.fixture
def recipient(recipient_key, node, config):
    """Wallet of the party that claims with the secret."""
    return HtlcWallet(recipient_key, node=node, config=config)


@pytest.fixture
def funded_funder(funder, node):
    """Funder wallet holding a single 1,000,000 sat UTXO."""
    node.fund(funder.address, 1_000_000)
    return funder


# =============================================================================
# Marker Helpers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory node)")
    config.addinivalue_line("markers", "security: Security-focused tests")
