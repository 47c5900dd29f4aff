"""
HTLC SDK - UTXO Reservation

Per-wallet bookkeeping that keeps two funding pipelines from spending the
same input.

The wallet holds the reservation lock from UTXO selection through broadcast.
Inputs of a broadcast transaction stay marked as pending until the node stops
reporting them as unspent, which covers the window where a node still lists
an output whose spend is only in the mempool.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from ..models import UTXO

log = logging.getLogger(__name__)


class UtxoReservation:
    """Tracks outpoints that are selected or already spent by this wallet."""

    def __init__(self):
        self._lock = threading.Lock()
        # outpoint -> spending txid (None while the spend is being built)
        self._pending: Dict[str, Optional[str]] = {}

    @contextmanager
    def hold(self) -> Iterator["UtxoReservation"]:
        """Serialize a select -> sign -> broadcast pipeline."""
        with self._lock:
            yield self

    def available(self, utxos: Iterable[UTXO]) -> List[UTXO]:
        """
        Filter out pending outpoints, keeping source order.

        Pending entries the node no longer reports are forgotten.
        """
        utxos = list(utxos)
        live = {utxo.outpoint for utxo in utxos}
        for outpoint in [o for o in self._pending if o not in live]:
            del self._pending[outpoint]
        return [utxo for utxo in utxos if utxo.outpoint not in self._pending]

    def reserve(self, utxos: Iterable[UTXO]) -> None:
        for utxo in utxos:
            self._pending[utxo.outpoint] = None

    def commit(self, utxos: Iterable[UTXO], txid: str) -> None:
        """Record the transaction that spent the reserved inputs."""
        for utxo in utxos:
            self._pending[utxo.outpoint] = txid
        log.debug("Committed inputs to %s", txid)

    def release(self, utxos: Iterable[UTXO]) -> None:
        """Return inputs of a failed pipeline to the spendable pool."""
        for utxo in utxos:
            self._pending.pop(utxo.outpoint, None)

    def is_pending(self, outpoint: str) -> bool:
        return outpoint in self._pending

    def __len__(self) -> int:
        return len(self._pending)
