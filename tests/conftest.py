"""Test configuration and fixtures for Stake Ledger."""
import pytest

from stakeledger.core.clock import ManualClock
from stakeledger.core.config import StakingConfig
from stakeledger.core.staking import StakingLedger
from stakeledger.core.token import UNIT, create_bep20
from stakeledger.utils.logger import StakeLedgerLogger


OWNER = "owner"
ALICE = "alice"
BOB = "bob"

# "total for stake" the fixture ledger is deployed with
FIXTURE_CAP = 5000 * UNIT


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers bound to streams that a test (e.g. CliRunner) closed."""
    yield
    StakeLedgerLogger.reset()


@pytest.fixture
def clock():
    """Deterministic clock."""
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def token():
    """BEP20 token with the full supply minted to the owner."""
    return create_bep20(OWNER)


@pytest.fixture
def ledger(token, clock):
    """Staking ledger deployed like the fixture: capped at 5000 tokens."""
    return StakingLedger(
        token,
        owner=OWNER,
        config=StakingConfig(staking_cap=FIXTURE_CAP),
        clock=clock,
    )


@pytest.fixture
def uncapped_ledger(token, clock):
    """Staking ledger sharing rewards among the actual stakers only."""
    return StakingLedger(token, owner=OWNER, clock=clock)
