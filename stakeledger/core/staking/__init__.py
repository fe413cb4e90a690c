"""Stake accounting, reward scheduling and withdrawal timing"""
from stakeledger.core.staking.positions import (
    PositionState,
    StakePosition,
    StakeBook,
    ClaimReceipt,
)
from stakeledger.core.staking.schedule import RewardSchedule, RewardScheduler
from stakeledger.core.staking.withdrawal import WithdrawalTimer
from stakeledger.core.staking.ledger import StakingLedger

__all__ = [
    "PositionState",
    "StakePosition",
    "StakeBook",
    "ClaimReceipt",
    "RewardSchedule",
    "RewardScheduler",
    "WithdrawalTimer",
    "StakingLedger",
]
