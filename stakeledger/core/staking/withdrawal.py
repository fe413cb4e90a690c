"""
Withdrawal Timer - cool-down between requesting and executing a withdrawal.
"""

from typing import Optional

from stakeledger.core.config import WITHDRAW_DELAY
from stakeledger.core.errors import NoPendingWithdraw, WithdrawPending
from stakeledger.core.staking.positions import StakePosition


class WithdrawalTimer:
    """
    Two-phase request/execute gate.

    A request records its timestamp on the position; the withdrawal is
    allowed once `delay` seconds have passed. Re-requesting restarts the
    cool-down.
    """

    def __init__(self, delay: int = WITHDRAW_DELAY):
        """
        Args:
            delay: Cool-down in seconds
        """
        self.delay = delay

    def request(self, position: StakePosition, now: int) -> int:
        """Start (or restart) the cool-down. Returns the ready timestamp."""
        position.withdraw_requested_at = now
        return now + self.delay

    def ready_at(self, position: StakePosition) -> Optional[int]:
        """Timestamp from which withdraw() succeeds, None without a request."""
        if position.withdraw_requested_at is None:
            return None
        return position.withdraw_requested_at + self.delay

    def remaining(self, position: StakePosition, now: int) -> int:
        """Seconds left in the cool-down; 0 without a request or once elapsed."""
        ready = self.ready_at(position)
        if ready is None:
            return 0
        return max(ready - now, 0)

    def check_ready(self, position: StakePosition, now: int) -> None:
        """
        Raises:
            NoPendingWithdraw: If no withdrawal was requested
            WithdrawPending: If the cool-down has not elapsed
        """
        ready = self.ready_at(position)
        if ready is None:
            raise NoPendingWithdraw()
        if now < ready:
            raise WithdrawPending()
