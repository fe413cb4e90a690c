"""
Unit tests for the reward scheduler.

Tests cover:
1. Staking window boundaries
2. Duration and funding preconditions
3. Linear accrual and reward-per-token
4. Staking cap and settlement
"""

import pytest

from stakeledger.core.errors import InvalidAmount, InvalidState
from stakeledger.core.staking import RewardSchedule, RewardScheduler

P = 10**18
T0 = 1_000


class TestRewardSchedule:
    """Tests for the schedule record."""

    def test_default_not_configured(self):
        """A fresh schedule has no window."""
        schedule = RewardSchedule()
        assert not schedule.is_configured
        assert not schedule.is_open(T0)
        assert not schedule.has_ended(T0)
        assert schedule.elapsed(T0) == 0

    def test_window_is_half_open(self):
        """Window is [start, start + duration)."""
        schedule = RewardSchedule(period_start=T0, period_duration=300)
        assert schedule.is_open(T0)
        assert schedule.is_open(T0 + 299)
        assert not schedule.is_open(T0 + 300)
        assert schedule.has_ended(T0 + 300)

    def test_elapsed_clamped(self):
        """Elapsed never exceeds the duration."""
        schedule = RewardSchedule(period_start=T0, period_duration=300)
        assert schedule.elapsed(T0 + 100) == 100
        assert schedule.elapsed(T0 + 10_000) == 300

    def test_dict_roundtrip_keeps_settlement(self):
        """Serialized schedule restores every field."""
        schedule = RewardSchedule(
            reward_rate=6, period_start=T0, period_duration=300,
            total_reward_funded=2000, settled_total_staked=500,
        )
        assert RewardSchedule.from_dict(schedule.to_dict()) == schedule


class TestSetRewardsDuration:
    """Tests for opening reward periods."""

    def test_opens_period_now(self):
        scheduler = RewardScheduler()
        schedule = scheduler.set_rewards_duration(300, T0)
        assert schedule.period_start == T0
        assert schedule.period_duration == 300

    def test_zero_duration_rejected(self):
        scheduler = RewardScheduler()
        with pytest.raises(InvalidState):
            scheduler.set_rewards_duration(0, T0)

    def test_negative_duration_rejected(self):
        scheduler = RewardScheduler()
        with pytest.raises(InvalidAmount):
            scheduler.set_rewards_duration(-1, T0)

    def test_active_period_cannot_be_changed(self):
        """Reconfiguring while the period runs is an invalid sequence."""
        scheduler = RewardScheduler()
        scheduler.set_rewards_duration(300, T0)
        with pytest.raises(InvalidState):
            scheduler.set_rewards_duration(600, T0 + 299)

    def test_new_period_after_expiry_resets_funding(self):
        """An expired period can be replaced; funding starts over."""
        scheduler = RewardScheduler()
        scheduler.set_rewards_duration(300, T0)
        scheduler.add_reward(3000)
        scheduler.settle(100, T0 + 300)

        schedule = scheduler.set_rewards_duration(600, T0 + 300)

        assert schedule.period_start == T0 + 300
        assert schedule.total_reward_funded == 0
        assert schedule.reward_rate == 0
        assert schedule.settled_total_staked is None


class TestFunding:
    """Tests for reward funding."""

    def test_requires_duration(self):
        scheduler = RewardScheduler()
        with pytest.raises(InvalidState):
            scheduler.check_can_fund(T0)

    def test_rejected_after_period_end(self):
        scheduler = RewardScheduler()
        scheduler.set_rewards_duration(300, T0)
        with pytest.raises(InvalidState):
            scheduler.check_can_fund(T0 + 300)

    def test_rate_is_amount_over_duration(self):
        scheduler = RewardScheduler()
        scheduler.set_rewards_duration(300, T0)
        assert scheduler.add_reward(3000) == 10

    def test_funding_accumulates(self):
        scheduler = RewardScheduler()
        scheduler.set_rewards_duration(300, T0)
        scheduler.add_reward(3000)
        assert scheduler.add_reward(3000) == 20
        assert scheduler.schedule.total_reward_funded == 6000


class TestRewardPerToken:
    """Tests for accrual."""

    @pytest.fixture
    def scheduler(self):
        scheduler = RewardScheduler(precision=P)
        scheduler.set_rewards_duration(300, T0)
        scheduler.add_reward(2000 * P)
        return scheduler

    def test_zero_when_nothing_staked(self, scheduler):
        """Division by zero is guarded."""
        assert scheduler.reward_per_token(0, T0 + 150) == 0

    def test_linear_accrual(self, scheduler):
        """Half the period releases half the reward."""
        assert scheduler.accrued(T0 + 150) == 1000 * P
        assert scheduler.reward_per_token(500 * P, T0 + 150) == 2 * P

    def test_accrual_stops_at_period_end(self, scheduler):
        assert scheduler.accrued(T0 + 300) == 2000 * P
        assert scheduler.accrued(T0 + 172_800) == 2000 * P

    def test_pro_rata_earned(self, scheduler):
        """Earned is proportional to the stake share."""
        total = 2000 * P
        assert scheduler.earned(500 * P, total, T0 + 300) == 500 * P
        assert scheduler.earned(1500 * P, total, T0 + 300) == 1500 * P

    def test_staking_cap_raises_denominator(self):
        """A capped pool pays funded/cap per token while under-subscribed."""
        scheduler = RewardScheduler(precision=P, staking_cap=5000 * P)
        scheduler.set_rewards_duration(300, T0)
        scheduler.add_reward(2000 * P)

        assert scheduler.reward_per_token(500 * P, T0 + 300) == 4 * P // 10
        assert scheduler.earned(500 * P, 500 * P, T0 + 300) == 200 * P

    def test_staking_cap_ignored_when_oversubscribed(self):
        scheduler = RewardScheduler(precision=P, staking_cap=1000 * P)
        scheduler.set_rewards_duration(300, T0)
        scheduler.add_reward(2000 * P)

        assert scheduler.earned(1000 * P, 4000 * P, T0 + 300) == 500 * P


class TestSettlement:
    """Tests for freezing the total after the period."""

    def test_settle_only_after_end(self):
        scheduler = RewardScheduler()
        scheduler.set_rewards_duration(300, T0)
        assert not scheduler.settle(1000, T0 + 299)
        assert scheduler.settle(1000, T0 + 300)

    def test_settle_is_first_write_wins(self):
        scheduler = RewardScheduler()
        scheduler.set_rewards_duration(300, T0)
        scheduler.settle(1000, T0 + 300)
        assert not scheduler.settle(400, T0 + 400)
        assert scheduler.schedule.settled_total_staked == 1000

    def test_settled_total_used_for_reward(self):
        """Later changes of the live total do not change shares."""
        scheduler = RewardScheduler(precision=P)
        scheduler.set_rewards_duration(300, T0)
        scheduler.add_reward(2000 * P)
        scheduler.settle(1000 * P, T0 + 300)

        assert scheduler.earned(500 * P, 500 * P, T0 + 400) == 1000 * P
