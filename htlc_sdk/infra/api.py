"""
HTLC SDK - Esplora API Client

Handles blockchain interactions via an Esplora REST API
(blockstream.info, mempool.space or a self-hosted instance).
"""

import re
import logging
from typing import Optional, List

import requests

from .node import NodeClient
from ..models import UTXO
from ..constants import DEFAULT_API_URLS
from ..errors import (
    APIError,
    BroadcastError,
    NotConnectedError,
    TransactionNotFoundError,
)

log = logging.getLogger(__name__)

_TXID_RE = re.compile(r"^[0-9a-f]{64}$")


class EsploraAPI(NodeClient):
    """
    Client for the Esplora REST API.

    Handles UTXO queries, raw transaction lookups and broadcasting.
    """

    def __init__(self, base_url: Optional[str] = None, network: str = "test", timeout: int = 30):
        """
        Initialize API client.

        Args:
            base_url: Custom API base URL. Auto-selected if None.
            network: "main", "test", "signet" or "regtest".
            timeout: Per-request timeout in seconds.
        """
        self.base_url = (base_url or DEFAULT_API_URLS.get(network, DEFAULT_API_URLS["test"])).rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{endpoint}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NotConnectedError(f"Cannot reach {self.base_url}: {e}", {"endpoint": endpoint})
        except requests.RequestException as e:
            raise APIError(f"API request failed: {e}", endpoint=endpoint)

    def _get(self, endpoint: str) -> requests.Response:
        """Make GET request to API."""
        response = self._request("GET", endpoint)
        if response.status_code == 404:
            raise APIError("Not found", status_code=404, endpoint=endpoint)
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise APIError(f"API request failed: {e}", status_code=response.status_code, endpoint=endpoint)
        return response

    # =========================================================================
    # Address Operations
    # =========================================================================

    def get_utxos(self, address: str) -> List[UTXO]:
        """
        Get all UTXOs for an address.

        Args:
            address: Bitcoin address.

        Returns:
            List of UTXO objects, in the order the API returned them.
        """
        try:
            data = self._get(f"address/{address}/utxo").json()
        except ValueError as e:
            raise APIError(f"Invalid JSON from API: {e}", endpoint="address/utxo")

        return [
            UTXO(
                txid=item["txid"],
                vout=item["vout"],
                value=item["value"],
                script_pubkey=item.get("scriptpubkey")
            )
            for item in data
        ]

    # =========================================================================
    # Transaction Operations
    # =========================================================================

    def get_raw_transaction(self, txid: str) -> str:
        """
        Get a raw transaction.

        Raises:
            TransactionNotFoundError: If the API does not know the txid.
        """
        try:
            return self._get(f"tx/{txid}/hex").text.strip()
        except APIError as e:
            if e.status_code == 404:
                raise TransactionNotFoundError(txid)
            raise

    def broadcast_transaction(self, raw_hex: str) -> str:
        """
        Broadcast a raw transaction.

        Returns:
            The txid reported by the API.

        Raises:
            BroadcastError: If the API rejects the transaction.
        """
        response = self._request(
            "POST", "tx",
            headers={"Content-Type": "text/plain"},
            data=raw_hex
        )
        result = response.text.strip()

        # Esplora answers with the bare txid on success
        if response.ok and _TXID_RE.match(result):
            log.info("Broadcast %s", result)
            return result
        raise BroadcastError(result or f"HTTP {response.status_code}", tx_hex=raw_hex)

    def get_block_count(self) -> int:
        return int(self._get("blocks/tip/height").text.strip())
