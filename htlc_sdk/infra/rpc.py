"""
HTLC SDK - Bitcoin Core JSON-RPC Client

Talks to bitcoind directly; mostly used against regtest nodes.
"""

import itertools
import logging
from decimal import Decimal
from typing import Any, List, Optional

import requests

from .node import NodeClient
from ..models import UTXO
from ..constants import DEFAULT_RPC_URL, SATS_PER_BTC
from ..errors import BroadcastError, NotConnectedError, RPCError, TransactionNotFoundError

log = logging.getLogger(__name__)

# bitcoind error codes that mean the transaction itself was rejected
RPC_VERIFY_ERRORS = (-22, -25, -26, -27)

# RPC_INVALID_ADDRESS_OR_KEY, returned for unknown txids
RPC_NOT_FOUND = -5


class BitcoinRPC(NodeClient):
    """
    JSON-RPC client for Bitcoin Core.

    UTXO lookups use `scantxoutset`, so no wallet needs to be loaded on the
    node and any address can be queried.
    """

    def __init__(
        self,
        url: str = DEFAULT_RPC_URL,
        user: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 30
    ):
        self.url = url
        self.session = requests.Session()
        if user is not None:
            self.session.auth = (user, password or "")
        self.timeout = timeout
        self._ids = itertools.count(1)

    def call(self, method: str, *params: Any) -> Any:
        """
        Invoke an RPC method.

        Raises:
            NotConnectedError: If the node cannot be reached.
            RPCError: If the node returns an error object.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        log.debug("RPC %s", method)
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NotConnectedError(f"Cannot reach node at {self.url}: {e}", {"method": method})
        except requests.RequestException as e:
            raise RPCError(f"RPC request failed: {e}", method=method)

        if response.status_code == 401:
            raise RPCError("RPC authentication failed", code=401, method=method)
        try:
            # bitcoind returns HTTP 500 alongside a JSON error body
            data = response.json(parse_float=Decimal)
        except ValueError:
            raise RPCError(f"Invalid RPC response (HTTP {response.status_code})", method=method)

        error = data.get("error")
        if error:
            raise RPCError(error.get("message", str(error)), code=error.get("code"), method=method)
        return data.get("result")

    # =========================================================================
    # Node Client
    # =========================================================================

    def get_utxos(self, address: str) -> List[UTXO]:
        result = self.call("scantxoutset", "start", [{"desc": f"addr({address})"}])
        return [
            UTXO(
                txid=item["txid"],
                vout=item["vout"],
                value=int((Decimal(item["amount"]) * SATS_PER_BTC).to_integral_value()),
                script_pubkey=item.get("scriptPubKey")
            )
            for item in (result or {}).get("unspents", [])
        ]

    def get_raw_transaction(self, txid: str) -> str:
        try:
            return self.call("getrawtransaction", txid)
        except RPCError as e:
            if e.code == RPC_NOT_FOUND:
                raise TransactionNotFoundError(txid)
            raise

    def broadcast_transaction(self, raw_hex: str) -> str:
        try:
            txid = self.call("sendrawtransaction", raw_hex)
        except RPCError as e:
            if e.code in RPC_VERIFY_ERRORS:
                raise BroadcastError(e.message, tx_hex=raw_hex)
            raise
        log.info("Broadcast %s", txid)
        return txid

    def get_block_count(self) -> int:
        return int(self.call("getblockcount"))
