"""
Staking Ledger - stake accounting, reward claims and delayed withdrawals.

Conceptual Background:
---------------------
The ledger holds staked tokens in custody on the token ledger (under its
own `address`) and tracks, per account:

1. **Stake**: tokens pulled in by stake()
2. **Withdrawal request**: cool-down started by request_withdraw()
3. **Reward claim**: whether the reward of this cycle was paid

State machine per account:

    UNSTAKED --stake--> STAKED --request_withdraw--> WITHDRAW_REQUESTED
    WITHDRAW_REQUESTED --withdraw (after cool-down)--> UNSTAKED
    STAKED | WITHDRAW_REQUESTED --claim_reward (period over)--> UNSTAKED (settled)

Transaction Processing:
----------------------
Every mutating call runs under the ledger lock and follows the same order:

1. Validate inputs and state (raise a StakingError, nothing changed)
2. Move tokens on the token ledger (TransferFailed aborts, nothing changed)
3. Apply the bookkeeping change
4. Persist (if a storage manager is attached)

With storage attached, steps 2-4 form one SQLite transaction shared with
the token ledger. If any of them fails, the transaction rolls back and
the in-memory positions, schedule and balances are restored.

No callback into caller code happens while the lock is held, so a
transfer can never observe a half-applied mutation.
"""

import json
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterable, Iterator, Optional

from stakeledger.core.clock import Clock, SystemClock
from stakeledger.core.config import StakingConfig
from stakeledger.core.errors import (
    AlreadyClaimed,
    InvalidAmount,
    InvalidState,
    NoStake,
    NotStarted,
    PeriodNotOver,
    StakingEnded,
    TransferFailed,
    Unauthorized,
    ZeroAmount,
)
from stakeledger.core.staking.positions import ClaimReceipt, StakeBook, StakePosition
from stakeledger.core.staking.schedule import RewardSchedule, RewardScheduler
from stakeledger.core.staking.withdrawal import WithdrawalTimer
from stakeledger.core.storage.storage_manager import StorageManager
from stakeledger.core.token.token_ledger import TokenLedgerProtocol
from stakeledger.utils.logger import get_logger
from stakeledger.utils.validation import validate_account, validate_amount

logger = get_logger("staking")


class StakingLedger:
    """
    Deterministic stake/reward ledger over a token ledger.

    Attributes:
        owner: Account allowed to configure and fund rewards
        address: Custody account of this ledger on the token ledger(s)
        config: Ledger configuration
        clock: Time source
        book: Positions and running total
        scheduler: Reward schedule and accrual
        timer: Withdrawal cool-down
    """

    def __init__(
        self,
        staking_token: TokenLedgerProtocol,
        owner: str,
        reward_token: Optional[TokenLedgerProtocol] = None,
        config: Optional[StakingConfig] = None,
        clock: Optional[Clock] = None,
        storage_manager: Optional[StorageManager] = None,
    ):
        """
        Initialize the ledger.

        Args:
            staking_token: Token staked by accounts
            owner: Privileged account (set duration, fund rewards)
            reward_token: Token rewards are paid in. None = staking token.
            config: Ledger configuration. None = defaults.
            clock: Time source. None = wall clock.
            storage_manager: Persistence manager. None = in-memory only.
        """
        is_valid, error = validate_account(owner, "owner")
        if not is_valid:
            raise InvalidAmount(error)

        self.config = config or StakingConfig()
        self.clock = clock or SystemClock()
        self.owner = owner
        self.address = self.config.ledger_address

        self._staking_token = staking_token
        self._reward_token = reward_token if reward_token is not None else staking_token

        self.book = StakeBook()
        self.scheduler = RewardScheduler(
            precision=self.config.reward_precision,
            staking_cap=self.config.staking_cap,
        )
        self.timer = WithdrawalTimer(delay=self.config.withdraw_delay)

        self._lock = threading.RLock()

        self.storage_manager = storage_manager
        if storage_manager:
            self._load_from_storage()

        logger.info(
            f"StakingLedger {self.address} initialized: token={staking_token.symbol}, "
            f"owner={owner}, withdraw_delay={self.timer.delay}s, cap={self.config.staking_cap}"
        )

    # =========================================================================
    # Views
    # =========================================================================

    def staking_token(self) -> TokenLedgerProtocol:
        """Token accepted by stake()."""
        return self._staking_token

    def reward_token(self) -> TokenLedgerProtocol:
        """Token rewards are paid in."""
        return self._reward_token

    def balance_of(self, account: str) -> int:
        """Staked amount of an account."""
        with self._lock:
            return self.book.get(account).staked

    def total_supply(self) -> int:
        """Total staked across all accounts."""
        with self._lock:
            return self.book.total_staked

    def get_position(self, account: str) -> StakePosition:
        """Copy of an account's position."""
        with self._lock:
            return replace(self.book.get(account))

    @property
    def schedule(self) -> RewardSchedule:
        """Copy of the current reward schedule."""
        with self._lock:
            return replace(self.scheduler.schedule)

    def reward_per_token(self) -> int:
        """Accrued reward per staked token, scaled by config.reward_precision."""
        with self._lock:
            return self.scheduler.reward_per_token(self.book.total_staked, self.clock.now())

    def earned(self, account: str) -> int:
        """Reward the account would receive if the accrual stopped now."""
        with self._lock:
            position = self.book.get(account)
            if position.reward_claimed:
                return 0
            return self.scheduler.earned(position.staked, self.book.total_staked, self.clock.now())

    def withdraw_pending(self, account: str) -> int:
        """Seconds until the account's requested withdrawal may execute."""
        with self._lock:
            return self.timer.remaining(self.book.get(account), self.clock.now())

    # =========================================================================
    # Reward Scheduler (owner)
    # =========================================================================

    def set_rewards_duration(self, caller: str, duration: int) -> RewardSchedule:
        """
        Open a reward period of `duration` seconds starting now.

        Raises:
            Unauthorized: If caller is not the owner
            InvalidState: If the current period has not ended or duration is 0
        """
        self._only_owner(caller)

        with self._lock, self._atomic():
            schedule = self.scheduler.set_rewards_duration(duration, self.clock.now())
            self._persist()
            return replace(schedule)

    def notify_reward_amount(self, caller: str, amount: int) -> int:
        """
        Fund the reward pool of the current period from the owner's balance.

        Returns:
            The new reward rate (tokens per second)

        Raises:
            Unauthorized: If caller is not the owner
            ZeroAmount: If amount is 0
            InvalidState: If no period is set or it has ended
            TransferFailed: If the owner cannot cover the amount
        """
        self._only_owner(caller)
        self._check_amount(amount)

        with self._lock:
            self.scheduler.check_can_fund(self.clock.now())

            with self._atomic():
                self._move(self._reward_token, caller, self.address, amount, pull=True)
                rate = self.scheduler.add_reward(amount)
                self._persist()
            return rate

    # =========================================================================
    # Stake Accounting
    # =========================================================================

    def stake(self, account: str, amount: int) -> StakePosition:
        """
        Stake `amount` tokens from `account`.

        Returns:
            Copy of the updated position

        Raises:
            ZeroAmount: If amount is 0
            NotStarted: If no reward period was ever opened
            StakingEnded: If the staking window has closed
            TransferFailed: If the account cannot cover the amount
        """
        self._check_account(account)
        self._check_amount(amount)

        with self._lock:
            now = self.clock.now()
            schedule = self.scheduler.schedule
            if not schedule.is_configured:
                raise NotStarted()
            if not schedule.is_open(now):
                raise StakingEnded()

            with self._atomic([account]):
                self._move(self._staking_token, account, self.address, amount, pull=True)
                position = self.book.credit(account, amount)
                position.reward_claimed = False
                self._persist([account])

            logger.info(f"{account} staked {amount} (position={position.staked}, total={self.book.total_staked})")
            return replace(position)

    def claim_reward(self, account: str) -> ClaimReceipt:
        """
        Settle an account once the reward period is over.

        Pays the pro-rata reward and returns the staked principal in the
        same call; the position ends UNSTAKED with reward_claimed set.

        Raises:
            AlreadyClaimed: If the account already claimed this cycle
            NoStake: If the account has nothing staked
            PeriodNotOver: If the reward period is still running
            TransferFailed: If custody cannot cover reward plus principal
        """
        self._check_account(account)

        with self._lock:
            now = self.clock.now()
            position = self.book.get(account)
            if position.reward_claimed:
                raise AlreadyClaimed()
            if position.staked == 0:
                raise NoStake()
            if not self.scheduler.schedule.has_ended(now):
                raise PeriodNotOver()

            reward = self.scheduler.earned(position.staked, self.book.total_staked, now)
            principal = position.staked

            with self._atomic([account]):
                self._pay_out(account, reward, principal)
                self.scheduler.settle(self.book.total_staked, now)
                self.book.release(account)
                self.book.get_or_create(account).reward_claimed = True
                self._persist([account])

            logger.info(f"{account} claimed reward {reward} and principal {principal}")
            return ClaimReceipt(account=account, reward=reward, principal=principal)

    # =========================================================================
    # Withdrawal Timer
    # =========================================================================

    def request_withdraw(self, account: str) -> int:
        """
        Start the withdrawal cool-down. A second request restarts it.

        Returns:
            Timestamp from which withdraw() succeeds

        Raises:
            NoStake: If the account has nothing staked
        """
        self._check_account(account)

        with self._lock:
            if self.book.get(account).staked == 0:
                raise NoStake()

            with self._atomic([account]):
                ready_at = self.timer.request(self.book.get_or_create(account), self.clock.now())
                self._persist([account])

            logger.info(f"{account} requested withdraw, ready at {ready_at}")
            return ready_at

    def withdraw(self, account: str) -> int:
        """
        Return the full stake once the cool-down has elapsed.

        Any unclaimed reward is forfeited.

        Returns:
            Amount returned

        Raises:
            NoStake: If the account has nothing staked
            NoPendingWithdraw: If no withdrawal was requested
            WithdrawPending: If the cool-down has not elapsed
            TransferFailed: If custody cannot cover the stake
        """
        self._check_account(account)

        with self._lock:
            now = self.clock.now()
            position = self.book.get(account)
            if position.staked == 0:
                raise NoStake()
            self.timer.check_ready(position, now)

            amount = position.staked
            with self._atomic([account]):
                self._move(self._staking_token, self.address, account, amount)
                self.scheduler.settle(self.book.total_staked, now)
                self.book.release(account)
                self._persist([account])

            logger.info(f"{account} withdrew {amount} (total={self.book.total_staked})")
            return amount

    # =========================================================================
    # Helpers
    # =========================================================================

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            logger.warning(f"Rejected owner-only call from {caller}")
            raise Unauthorized(f"Caller {caller} is not the owner")

    @staticmethod
    def _check_amount(amount: int) -> None:
        is_valid, error = validate_amount(amount)
        if not is_valid:
            raise InvalidAmount(error)
        if amount == 0:
            raise ZeroAmount()

    @staticmethod
    def _check_account(account: str) -> None:
        is_valid, error = validate_account(account)
        if not is_valid:
            raise InvalidAmount(error)

    @contextmanager
    def _atomic(self, accounts: Iterable[str] = ()) -> Iterator[None]:
        """
        Run one mutation as a single storage transaction.

        Token writes and ledger writes commit together. On any failure the
        storage transaction rolls back and the positions of `accounts` and
        the schedule are put back in memory.
        """
        if not self.storage_manager:
            yield
            return

        captured = (self.book.capture(accounts), replace(self.scheduler.schedule))
        with self.storage_manager.transaction():
            self.storage_manager.on_rollback(lambda: self._rollback(captured))
            yield

    def _rollback(self, captured) -> None:
        positions, schedule = captured
        self.book.rollback(positions)
        self.scheduler.schedule = schedule
        logger.debug(f"Ledger {self.address}: rolled back in-memory state")

    def _move(
        self,
        token: TokenLedgerProtocol,
        sender: str,
        to: str,
        amount: int,
        pull: bool = False,
    ) -> None:
        """Transfer on a token ledger, compensated on rollback if it keeps its own storage."""
        if pull:
            token.transfer_from(sender, to, amount)
        else:
            token.transfer(sender, to, amount)

        # Tokens on this storage manager are undone by the shared transaction
        if self.storage_manager and getattr(token, "storage_manager", None) is not self.storage_manager:
            self.storage_manager.on_rollback(lambda: token.transfer(to, sender, amount))

    def _pay_out(self, account: str, reward: int, principal: int) -> None:
        """Transfer reward and principal out of custody, all or nothing."""
        if self._reward_token is self._staking_token:
            if reward + principal > 0:
                self._move(self._staking_token, self.address, account, reward + principal)
            return

        # Two tokens: make sure neither transfer can fail before moving any
        reward_available = self._reward_token.balance_of(self.address)
        if reward_available < reward:
            raise TransferFailed(
                f"{self._reward_token.symbol}: reward pool {reward_available} < {reward}"
            )
        principal_available = self._staking_token.balance_of(self.address)
        if principal_available < principal:
            raise TransferFailed(
                f"{self._staking_token.symbol}: custody {principal_available} < {principal}"
            )

        if reward > 0:
            self._move(self._reward_token, self.address, account, reward)
        self._move(self._staking_token, self.address, account, principal)

    # =========================================================================
    # Persistence
    # =========================================================================

    def _state_dict(self) -> dict:
        return {
            "owner": self.owner,
            "schedule": json.dumps(self.scheduler.schedule.to_dict()),
        }

    def _persist(self, accounts: Iterable[str] = ()) -> None:
        """Write changed positions and ledger state in one storage transaction."""
        if not self.storage_manager:
            return
        positions = {a: self.book.get(a).to_dict() for a in accounts}
        self.storage_manager.persist_ledger_update(self.address, positions, self._state_dict())

    def _load_from_storage(self) -> None:
        """Load positions and schedule from storage manager."""
        positions, state = self.storage_manager.load_ledger_state(self.address)

        stored_owner = state.get("owner")
        if stored_owner is not None and stored_owner != self.owner:
            raise InvalidState(f"Ledger {self.address} is owned by {stored_owner}")

        self.book.restore({a: StakePosition.from_dict(d) for a, d in positions.items()})
        if "schedule" in state:
            self.scheduler.schedule = RewardSchedule.from_dict(json.loads(state["schedule"]))

        logger.info(
            f"Loaded ledger {self.address}: {len(self.book)} stakers, total={self.book.total_staked}"
        )

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return f"StakingLedger(address={self.address}, stakers={len(self.book)}, total={self.book.total_staked})"

    def stats(self) -> dict:
        """Get ledger statistics."""
        with self._lock:
            now = self.clock.now()
            schedule = self.scheduler.schedule
            return {
                "address": self.address,
                "owner": self.owner,
                "staking_token": self._staking_token.symbol,
                "reward_token": self._reward_token.symbol,
                "stakers": len(self.book),
                "total_staked": self.book.total_staked,
                "period_start": schedule.period_start,
                "period_end": schedule.period_end if schedule.is_configured else None,
                "staking_open": schedule.is_open(now),
                "total_reward_funded": schedule.total_reward_funded,
                "reward_rate": schedule.reward_rate,
                "reward_per_token": self.scheduler.reward_per_token(self.book.total_staked, now),
                "withdraw_delay": self.timer.delay,
                "staking_cap": self.scheduler.staking_cap,
            }
