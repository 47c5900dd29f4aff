"""
HTLC SDK - UTXO Selection

Greedy, order-preserving input selection.
"""

import logging
from typing import List, Iterable, Optional

from ..models import UTXO
from ..errors import InsufficientFundsError, NoUtxosFoundError

log = logging.getLogger(__name__)


def select_inputs(
    utxos: Iterable[UTXO],
    target_sats: int,
    fee_sats: int,
    address: Optional[str] = None
) -> List[UTXO]:
    """
    Pick inputs covering target + fee.

    UTXOs are scanned in the order the source returned them (no sorting by
    value) and selection stops as soon as the running total reaches the
    threshold.

    Args:
        utxos: Candidate UTXOs, in source order.
        target_sats: Amount the outputs need.
        fee_sats: Fixed fee to cover on top of the target.
        address: Owning address, only used in error details.

    Returns:
        Selected UTXOs in scan order.

    Raises:
        NoUtxosFoundError: If there are no candidates.
        InsufficientFundsError: If all candidates together fall short.
    """
    utxos = list(utxos)
    if not utxos:
        raise NoUtxosFoundError(address)

    threshold = target_sats + fee_sats
    selected: List[UTXO] = []
    total = 0
    for utxo in utxos:
        selected.append(utxo)
        total += utxo.value
        if total >= threshold:
            log.debug("Selected %d of %d UTXOs (%d sats) for %d sats",
                      len(selected), len(utxos), total, threshold)
            return selected

    raise InsufficientFundsError(required=threshold, available=total)
