"""
Unit tests for stake positions and the withdrawal timer.
"""

import pytest

from stakeledger.core.errors import NoPendingWithdraw, WithdrawPending
from stakeledger.core.staking import (
    ClaimReceipt,
    PositionState,
    StakeBook,
    StakePosition,
    WithdrawalTimer,
)


class TestStakePosition:
    """Tests for the position record."""

    def test_state_machine_states(self):
        position = StakePosition()
        assert position.state == PositionState.UNSTAKED

        position.staked = 10
        assert position.state == PositionState.STAKED

        position.withdraw_requested_at = 1000
        assert position.state == PositionState.WITHDRAW_REQUESTED

    def test_dict_roundtrip(self):
        position = StakePosition(staked=2**200, reward_claimed=True, withdraw_requested_at=5)
        assert StakePosition.from_dict(position.to_dict()) == position

    def test_claim_receipt_total(self):
        receipt = ClaimReceipt(account="alice", reward=200, principal=500)
        assert receipt.total == 700


class TestStakeBook:
    """Tests for the position book."""

    def test_unknown_account_reads_empty(self):
        book = StakeBook()
        assert book.get("alice").staked == 0
        assert "alice" not in book.positions

    def test_credit_and_release_keep_total(self):
        book = StakeBook()
        book.credit("alice", 500)
        book.credit("bob", 200)
        book.credit("alice", 100)
        assert book.total_staked == 800
        assert book.check_totals()

        assert book.release("alice") == 600
        assert book.total_staked == 200
        assert book.get("alice").staked == 0
        assert book.check_totals()
        assert len(book) == 1

    def test_release_clears_request(self):
        book = StakeBook()
        book.credit("alice", 500).withdraw_requested_at = 10
        book.release("alice")
        assert book.get("alice").withdraw_requested_at is None

    def test_restore_recomputes_total(self):
        book = StakeBook()
        book.restore({"a": StakePosition(staked=3), "b": StakePosition(staked=4)})
        assert book.total_staked == 7

    def test_rollback_undoes_changes_after_capture(self):
        book = StakeBook()
        book.credit("alice", 500)
        captured = book.capture(["alice", "bob"])

        book.credit("alice", 100).reward_claimed = True
        book.credit("bob", 50)
        book.rollback(captured)

        assert book.get("alice") == StakePosition(staked=500)
        assert "bob" not in book.positions
        assert book.total_staked == 500
        assert book.check_totals()


class TestWithdrawalTimer:
    """Tests for the cool-down gate."""

    def test_default_delay_is_48_hours(self):
        assert WithdrawalTimer().delay == 172_800

    def test_remaining_after_request(self):
        timer = WithdrawalTimer(delay=100)
        position = StakePosition(staked=1)

        assert timer.request(position, 1000) == 1100
        assert timer.remaining(position, 1000) == 100
        assert timer.remaining(position, 1060) == 40
        assert timer.remaining(position, 5000) == 0

    def test_no_request_has_no_remaining(self):
        assert WithdrawalTimer().remaining(StakePosition(staked=1), 1000) == 0

    def test_check_ready_without_request(self):
        with pytest.raises(NoPendingWithdraw):
            WithdrawalTimer().check_ready(StakePosition(staked=1), 1000)

    def test_check_ready_during_cooldown(self):
        timer = WithdrawalTimer(delay=100)
        position = StakePosition(staked=1)
        timer.request(position, 1000)

        with pytest.raises(WithdrawPending):
            timer.check_ready(position, 1099)
        timer.check_ready(position, 1100)

    def test_rerequest_restarts_cooldown(self):
        timer = WithdrawalTimer(delay=100)
        position = StakePosition(staked=1)
        timer.request(position, 1000)
        timer.request(position, 1080)
        assert timer.remaining(position, 1100) == 80
