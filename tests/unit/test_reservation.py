"""
Unit tests for UTXO reservation bookkeeping.
"""

import threading

import pytest

from htlc_sdk.core.reservation import UtxoReservation
from htlc_sdk.models import UTXO

A = UTXO("a" * 64, 0, 1000)
B = UTXO("b" * 64, 1, 2000)
C = UTXO("c" * 64, 0, 3000)


class TestReservation:

    @pytest.mark.unit
    def test_reserved_inputs_filtered_in_order(self):
        reservation = UtxoReservation()
        reservation.reserve([B])

        assert reservation.available([A, B, C]) == [A, C]
        assert reservation.is_pending(B.outpoint)

    @pytest.mark.unit
    def test_release(self):
        reservation = UtxoReservation()
        reservation.reserve([A, B])
        reservation.release([A])

        assert reservation.available([A, B]) == [A]
        assert len(reservation) == 1

    @pytest.mark.unit
    def test_committed_inputs_stay_pending_while_listed(self):
        reservation = UtxoReservation()
        reservation.reserve([A])
        reservation.commit([A], "f" * 64)

        # node still lists A although its spend is in the mempool
        assert reservation.available([A, B]) == [B]
        assert reservation.is_pending(A.outpoint)

    @pytest.mark.unit
    def test_pending_forgotten_once_node_drops_it(self):
        reservation = UtxoReservation()
        reservation.commit([A], "f" * 64)

        assert reservation.available([B]) == [B]
        assert not reservation.is_pending(A.outpoint)
        assert len(reservation) == 0

    @pytest.mark.unit
    def test_hold_serializes(self):
        reservation = UtxoReservation()
        inside = []
        overlap = []

        def pipeline():
            with reservation.hold():
                if inside:
                    overlap.append(True)
                inside.append(1)
                threading.Event().wait(0.01)
                inside.pop()

        threads = [threading.Thread(target=pipeline) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlap == []
