"""
Stake positions and the book that keeps them summed.

A position is created implicitly on first stake and zeroed in place when
withdrawn or settled; it is never deleted.
"""

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Dict, Iterable, Optional, Tuple


class PositionState(IntEnum):
    """Per-account state of the stake/withdraw state machine."""
    UNSTAKED = 0
    STAKED = 1
    WITHDRAW_REQUESTED = 2


@dataclass
class StakePosition:
    """
    Stake held by one account.

    Attributes:
        staked: Tokens held in custody for the account
        reward_claimed: Whether the reward of the current cycle was paid
        withdraw_requested_at: Timestamp of the outstanding withdrawal request
    """
    staked: int = 0
    reward_claimed: bool = False
    withdraw_requested_at: Optional[int] = None

    @property
    def state(self) -> PositionState:
        if self.staked == 0:
            return PositionState.UNSTAKED
        if self.withdraw_requested_at is not None:
            return PositionState.WITHDRAW_REQUESTED
        return PositionState.STAKED

    def to_dict(self) -> dict:
        return {
            "staked": self.staked,
            "reward_claimed": self.reward_claimed,
            "withdraw_requested_at": self.withdraw_requested_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StakePosition":
        requested = data.get("withdraw_requested_at")
        return cls(
            staked=int(data.get("staked", 0)),
            reward_claimed=bool(data.get("reward_claimed", False)),
            withdraw_requested_at=None if requested is None else int(requested),
        )


@dataclass
class ClaimReceipt:
    """Receipt for a settled claim."""
    account: str
    reward: int
    principal: int

    @property
    def total(self) -> int:
        return self.reward + self.principal


class StakeBook:
    """
    Mapping of account to StakePosition with a running total.

    Invariant: total_staked == sum(p.staked for p in positions).
    """

    def __init__(self):
        self.positions: Dict[str, StakePosition] = {}
        self.total_staked: int = 0

    def get(self, account: str) -> StakePosition:
        """Position of an account; unknown accounts read as an empty position."""
        return self.positions.get(account) or StakePosition()

    def get_or_create(self, account: str) -> StakePosition:
        position = self.positions.get(account)
        if position is None:
            position = StakePosition()
            self.positions[account] = position
        return position

    def credit(self, account: str, amount: int) -> StakePosition:
        """Add stake to an account and to the total."""
        position = self.get_or_create(account)
        position.staked += amount
        self.total_staked += amount
        return position

    def release(self, account: str) -> int:
        """Zero an account's stake and return the amount removed."""
        position = self.get_or_create(account)
        amount = position.staked
        position.staked = 0
        position.withdraw_requested_at = None
        self.total_staked -= amount
        return amount

    def restore(self, positions: Dict[str, StakePosition]) -> None:
        """Replace all positions (used when loading from storage)."""
        self.positions = dict(positions)
        self.total_staked = sum(p.staked for p in self.positions.values())

    def capture(self, accounts: Iterable[str]) -> Tuple[Dict[str, Optional[StakePosition]], int]:
        """Copies of `accounts` positions and the total, for rollback()."""
        saved = {}
        for account in accounts:
            position = self.positions.get(account)
            saved[account] = None if position is None else replace(position)
        return saved, self.total_staked

    def rollback(self, captured: Tuple[Dict[str, Optional[StakePosition]], int]) -> None:
        """Put back what capture() returned."""
        saved, total = captured
        for account, position in saved.items():
            if position is None:
                self.positions.pop(account, None)
            else:
                self.positions[account] = position
        self.total_staked = total

    def check_totals(self) -> bool:
        return self.total_staked == sum(p.staked for p in self.positions.values())

    def __len__(self) -> int:
        return sum(1 for p in self.positions.values() if p.staked > 0)
