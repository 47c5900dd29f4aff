"""
Unit tests for SDK data models.
"""

import pytest

from htlc_sdk.models import (
    UTXO, FundingTransaction, SwapDescriptor, Swap, SwapState,
    HtlcVariant, SpendPath, RedemptionTransaction
)


@pytest.fixture
def descriptor():
    return SwapDescriptor(
        txid="a" * 64,
        vout=0,
        address="bcrt1qexample",
        locker_pubkey="02" + "11" * 32,
        secret_hash="2c" * 32,
        lock_time_blocks=114,
        amount_sats=100000,
        redeem_script="63a8"
    )


class TestUTXO:
    """Tests for UTXO model."""

    @pytest.mark.unit
    def test_outpoint(self):
        utxo = UTXO(txid="b" * 64, vout=3, value=1000)
        assert utxo.outpoint == "b" * 64 + ":3"

    @pytest.mark.unit
    def test_to_dict(self):
        d = UTXO(txid="b" * 64, vout=3, value=1000, script_pubkey="0014").to_dict()
        assert d == {"txid": "b" * 64, "vout": 3, "value": 1000, "script_pubkey": "0014"}


class TestFundingTransaction:

    @pytest.mark.unit
    def test_totals(self):
        funding = FundingTransaction(
            txid="c" * 64,
            raw_hex="02",
            inputs=[UTXO("d" * 64, 0, 60000), UTXO("d" * 64, 1, 50000)],
            amount_sats=100000,
            fee_sats=1000,
            change_sats=9000
        )
        assert funding.total_input == 110000
        assert funding.has_change
        assert funding.htlc_output_index == 0


class TestSwapDescriptor:
    """Tests for the public swap description."""

    @pytest.mark.unit
    def test_outpoint(self, descriptor):
        assert descriptor.outpoint == "a" * 64 + ":0"

    @pytest.mark.unit
    def test_dict_round_trip(self, descriptor):
        assert SwapDescriptor.from_dict(descriptor.to_dict()) == descriptor

    @pytest.mark.unit
    def test_unknown_field_rejected(self, descriptor):
        data = descriptor.to_dict()
        data["secret"] = "68656c6c6f"
        with pytest.raises(TypeError):
            SwapDescriptor.from_dict(data)


class TestSwap:
    """Tests for the swap state machine."""

    @pytest.mark.unit
    def test_initial_history(self, descriptor):
        swap = Swap(descriptor)
        assert swap.state == SwapState.CREATED
        assert swap.history == [SwapState.CREATED]
        assert swap.variant == HtlcVariant.PUBKEY
        assert swap.outpoint == descriptor.outpoint

    @pytest.mark.unit
    @pytest.mark.parametrize("state,target,allowed", [
        (SwapState.CREATED, SwapState.FUNDED, True),
        (SwapState.CREATED, SwapState.CLAIMED, False),
        (SwapState.FUNDED, SwapState.CLAIMED, True),
        (SwapState.FUNDED, SwapState.REFUNDED, True),
        (SwapState.FUNDED, SwapState.CREATED, False),
        (SwapState.CLAIMED, SwapState.REFUNDED, False),
        (SwapState.REFUNDED, SwapState.CLAIMED, False),
    ])
    def test_transitions(self, descriptor, state, target, allowed):
        assert Swap(descriptor, state=state).can_transition(target) is allowed

    @pytest.mark.unit
    def test_terminal_states(self):
        assert SwapState.CLAIMED.is_terminal
        assert SwapState.REFUNDED.is_terminal
        assert not SwapState.FUNDED.is_terminal


class TestRedemptionTransaction:

    @pytest.mark.unit
    def test_output_sats(self):
        tx = RedemptionTransaction(
            txid="e" * 64,
            raw_hex="02",
            path=SpendPath.REFUND,
            funding_outpoint="a" * 64 + ":0",
            locked_amount_sats=100000,
            fee_sats=1000
        )
        assert tx.output_sats == 99000
        assert tx.path.value == "refund"
