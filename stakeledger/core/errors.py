"""
Named failures raised by the staking ledger and token ledger.

Every error aborts the triggering call with no state change. Messages
mirror the revert strings of the on-chain staking contract.
"""


class StakingError(Exception):
    """Base class for all ledger failures."""


class ZeroAmount(StakingError):
    """Stake or funding called with amount 0."""

    def __init__(self, message: str = "Amount = 0"):
        super().__init__(message)


class InvalidAmount(StakingError):
    """Amount is negative, not an integer, or exceeds uint256."""


class NotStarted(StakingError):
    """Staking attempted before a reward schedule exists."""

    def __init__(self, message: str = "Staking not started"):
        super().__init__(message)


class StakingEnded(StakingError):
    """Staking attempted after the window closed."""

    def __init__(self, message: str = "Staking period has ended"):
        super().__init__(message)


class NoStake(StakingError):
    """Withdraw, claim or withdraw request with zero staked balance."""

    def __init__(self, message: str = "You have no stake"):
        super().__init__(message)


class NoPendingWithdraw(StakingError):
    """Withdraw attempted without a prior request."""

    def __init__(self, message: str = "You have no pending withdraw"):
        super().__init__(message)


class WithdrawPending(StakingError):
    """Withdraw attempted before the cool-down elapsed."""

    def __init__(self, message: str = "Withdraw pending."):
        super().__init__(message)


class PeriodNotOver(StakingError):
    """Claim attempted before the staking period ends."""

    def __init__(self, message: str = "Staking period is not over"):
        super().__init__(message)


class AlreadyClaimed(StakingError):
    """Second claim for one account."""

    def __init__(self, message: str = "Reward has been claimed"):
        super().__init__(message)


class InvalidState(StakingError):
    """Schedule reconfiguration attempted in an invalid sequence."""


class Unauthorized(StakingError):
    """Administrative call from an account other than the owner."""


class TransferFailed(StakingError):
    """Token ledger refused a transfer (insufficient balance)."""


__all__ = [
    "StakingError",
    "ZeroAmount",
    "InvalidAmount",
    "NotStarted",
    "StakingEnded",
    "NoStake",
    "NoPendingWithdraw",
    "WithdrawPending",
    "PeriodNotOver",
    "AlreadyClaimed",
    "InvalidState",
    "Unauthorized",
    "TransferFailed",
]
