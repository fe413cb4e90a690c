"""
Reward Scheduler - linear reward accrual over a fixed period.

Conceptual Background:
---------------------
The owner opens a reward period with set_rewards_duration() and funds it
with notify_reward_amount(). Rewards accrue linearly:

    accrued(t)          = funded * elapsed(t) / duration
    reward_per_token(t) = accrued(t) * PRECISION / total_staked

where elapsed is clamped to [0, duration]. Once the period is over the
total staked is frozen (settled) by the first operation that touches the
ledger, so claims and withdrawals made afterwards cannot change anyone
else's share.

Staking cap:
-----------
A ledger may be deployed with a staking cap ("total for stake"). Rewards
are then divided as if at least `cap` tokens were staked: a pool funded
with 2000 and capped at 5000 pays 0.4 per staked token, whether 500 or
5000 tokens are actually staked. The unpaid remainder stays in custody.
"""

from dataclasses import asdict, dataclass
from typing import Optional

from stakeledger.core.config import REWARD_PRECISION
from stakeledger.core.errors import InvalidAmount, InvalidState
from stakeledger.utils.logger import get_logger
from stakeledger.utils.validation import validate_duration

logger = get_logger("staking.schedule")


@dataclass
class RewardSchedule:
    """
    Reward period of one ledger.

    Attributes:
        reward_rate: Funded reward per second (integer division)
        period_start: Timestamp the period opened
        period_duration: Length of the period in seconds (0 = not set)
        total_reward_funded: Reward notified for this period
        settled_total_staked: Total staked frozen after the period ended
    """
    reward_rate: int = 0
    period_start: int = 0
    period_duration: int = 0
    total_reward_funded: int = 0
    settled_total_staked: Optional[int] = None

    @property
    def is_configured(self) -> bool:
        """Whether set_rewards_duration() has been called."""
        return self.period_duration > 0

    @property
    def period_end(self) -> int:
        """First timestamp outside the staking window."""
        return self.period_start + self.period_duration

    def is_open(self, now: int) -> bool:
        """Whether now lies inside [period_start, period_end)."""
        return self.is_configured and self.period_start <= now < self.period_end

    def has_ended(self, now: int) -> bool:
        return self.is_configured and now >= self.period_end

    def elapsed(self, now: int) -> int:
        """Seconds of the period elapsed at `now`, clamped to the duration."""
        if not self.is_configured:
            return 0
        return min(max(now - self.period_start, 0), self.period_duration)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RewardSchedule":
        settled = data.get("settled_total_staked")
        return cls(
            reward_rate=int(data.get("reward_rate", 0)),
            period_start=int(data.get("period_start", 0)),
            period_duration=int(data.get("period_duration", 0)),
            total_reward_funded=int(data.get("total_reward_funded", 0)),
            settled_total_staked=None if settled is None else int(settled),
        )


class RewardScheduler:
    """
    Owns the reward schedule of a ledger and computes accruals.

    The scheduler does not move tokens; the staking ledger performs the
    transfers and calls into the scheduler for checks and bookkeeping.
    """

    def __init__(
        self,
        precision: int = REWARD_PRECISION,
        staking_cap: Optional[int] = None,
        schedule: Optional[RewardSchedule] = None,
    ):
        """
        Args:
            precision: Fixed-point scale of reward_per_token
            staking_cap: Minimum denominator for reward sharing
            schedule: Restored schedule (None = not configured)
        """
        self.precision = precision
        self.staking_cap = staking_cap
        self.schedule = schedule or RewardSchedule()

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_rewards_duration(self, duration: int, now: int) -> RewardSchedule:
        """
        Open a new reward period starting now.

        Raises:
            InvalidAmount: If duration is not a valid integer
            InvalidState: If duration is 0 or the current period is still running
        """
        is_valid, error = validate_duration(duration)
        if not is_valid:
            raise InvalidAmount(error)
        if duration == 0:
            raise InvalidState("Rewards duration must be positive")
        if self.schedule.is_configured and not self.schedule.has_ended(now):
            raise InvalidState(
                "Previous rewards period must be complete before changing the duration"
            )

        self.schedule = RewardSchedule(period_start=now, period_duration=duration)
        logger.info(f"Reward period opened: start={now}, duration={duration}s")
        return self.schedule

    def check_can_fund(self, now: int) -> None:
        """
        Raise unless rewards may be notified at `now`.

        Raises:
            InvalidState: If no duration is set or the period has ended
        """
        if not self.schedule.is_configured:
            raise InvalidState("Rewards duration not set")
        if self.schedule.has_ended(now):
            raise InvalidState("Reward period has ended")

    def add_reward(self, amount: int) -> int:
        """Record funded reward and recompute the rate. Returns the new rate."""
        self.schedule.total_reward_funded += amount
        self.schedule.reward_rate = self.schedule.total_reward_funded // self.schedule.period_duration
        logger.info(
            f"Reward funded: +{amount}, total={self.schedule.total_reward_funded}, "
            f"rate={self.schedule.reward_rate}/s"
        )
        return self.schedule.reward_rate

    def settle(self, total_staked: int, now: int) -> bool:
        """
        Freeze the total staked once the period is over.

        Returns:
            True if this call froze the total
        """
        if not self.schedule.has_ended(now) or self.schedule.settled_total_staked is not None:
            return False
        self.schedule.settled_total_staked = total_staked
        logger.debug(f"Reward period settled with total_staked={total_staked}")
        return True

    # =========================================================================
    # Accrual
    # =========================================================================

    def accrued(self, now: int) -> int:
        """Reward released so far in the current period."""
        if not self.schedule.is_configured:
            return 0
        return (
            self.schedule.total_reward_funded
            * self.schedule.elapsed(now)
            // self.schedule.period_duration
        )

    def reward_per_token(self, total_staked: int, now: int) -> int:
        """
        Accrued reward per staked token, scaled by `precision`.

        Uses the settled total once the period is over and frozen.
        Returns 0 when nothing is staked.
        """
        if self.schedule.settled_total_staked is not None:
            total_staked = self.schedule.settled_total_staked
        if total_staked == 0:
            return 0

        denominator = total_staked
        if self.staking_cap is not None:
            denominator = max(total_staked, self.staking_cap)

        return self.accrued(now) * self.precision // denominator

    def earned(self, staked: int, total_staked: int, now: int) -> int:
        """Reward owed to a position of size `staked`."""
        return staked * self.reward_per_token(total_staked, now) // self.precision

    def __repr__(self) -> str:
        s = self.schedule
        return (
            f"RewardScheduler(start={s.period_start}, duration={s.period_duration}, "
            f"funded={s.total_reward_funded}, cap={self.staking_cap})"
        )
