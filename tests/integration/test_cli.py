"""
CLI Tests - commands run against a temporary data directory.
"""

import click
import pytest
from click.testing import CliRunner

from stakeledger.cli.main import cli, fmt, to_units
from stakeledger.core.storage import StorageManager
from stakeledger.core.token import UNIT


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return str(tmp_path / "cli_data")


def invoke(runner, data_dir, *args):
    return runner.invoke(cli, ["--data-dir", data_dir, *args])


class TestAmountHelpers:
    """Tests for token amount parsing and formatting."""

    def test_to_units(self):
        assert to_units("500") == 500 * UNIT
        assert to_units("0.25") == UNIT // 4

    @pytest.mark.parametrize("value", ["abc", "0.0000000000000000001", "inf", "-Infinity", "nan", "-1"])
    def test_to_units_rejects(self, value):
        with pytest.raises(click.BadParameter):
            to_units(value)

    def test_fmt(self):
        assert fmt(5200 * UNIT) == "5,200"
        assert fmt(UNIT + UNIT // 2) == "1.5"


class TestCommands:
    """Tests for persisted CLI commands."""

    def test_requires_init(self, runner, data_dir):
        result = invoke(runner, data_dir, "status")
        assert result.exit_code == 1
        assert "No ledger" in result.output

    def test_init_twice_fails(self, runner, data_dir):
        assert invoke(runner, data_dir, "init", "--owner", "owner").exit_code == 0
        result = invoke(runner, data_dir, "init", "--owner", "owner")
        assert result.exit_code == 1
        assert "already initialized" in result.output

    def test_stake_flow(self, runner, data_dir):
        assert invoke(runner, data_dir, "init", "--owner", "owner", "--cap", "5000").exit_code == 0
        assert invoke(runner, data_dir, "transfer", "owner", "alice", "2000").exit_code == 0

        result = invoke(runner, data_dir, "stake", "alice", "500")
        assert result.exit_code == 1
        assert "NotStarted" in result.output

        assert invoke(runner, data_dir, "set-duration", "owner", "3600").exit_code == 0
        assert invoke(runner, data_dir, "fund", "owner", "2000").exit_code == 0

        result = invoke(runner, data_dir, "stake", "alice", "500")
        assert result.exit_code == 0, result.output
        assert "position 500" in result.output

        result = invoke(runner, data_dir, "status", "alice")
        assert result.exit_code == 0
        assert "Token balance: 1,500" in result.output
        assert "Staked: 500" in result.output
        assert "STAKED" in result.output

        result = invoke(runner, data_dir, "claim", "alice")
        assert result.exit_code == 1
        assert "PeriodNotOver" in result.output

    def test_withdraw_pending(self, runner, data_dir):
        invoke(runner, data_dir, "init", "--owner", "owner")
        invoke(runner, data_dir, "transfer", "owner", "alice", "10")
        invoke(runner, data_dir, "set-duration", "owner", "3600")
        invoke(runner, data_dir, "stake", "alice", "10")

        assert invoke(runner, data_dir, "request-withdraw", "alice").exit_code == 0

        result = invoke(runner, data_dir, "withdraw", "alice")
        assert result.exit_code == 1
        assert "WithdrawPending" in result.output

    def test_owner_only(self, runner, data_dir):
        invoke(runner, data_dir, "init", "--owner", "owner")
        result = invoke(runner, data_dir, "set-duration", "mallory", "300")
        assert result.exit_code == 1
        assert "Unauthorized" in result.output

    def test_status(self, runner, data_dir):
        invoke(runner, data_dir, "init", "--owner", "owner", "--withdraw-delay", "60")
        result = invoke(runner, data_dir, "status")
        assert result.exit_code == 0
        assert "withdraw_delay: 60" in result.output
        assert "total_staked: 0" in result.output

    @pytest.mark.parametrize("option, message", [
        ("--withdraw-delay=-5", "withdraw_delay must be >= 0"),
        ("--cap=0", "staking_cap must be > 0"),
    ])
    def test_init_rejects_invalid_config(self, runner, data_dir, option, message):
        result = invoke(runner, data_dir, "init", "--owner", "owner", option)

        assert result.exit_code == 2
        assert message in result.output

        storage = StorageManager(data_dir)
        assert not storage.is_initialized()
        storage.close()

    def test_transfer_rejects_infinite_amount(self, runner, data_dir):
        invoke(runner, data_dir, "init", "--owner", "owner")
        result = invoke(runner, data_dir, "transfer", "owner", "alice", "inf")
        assert result.exit_code == 2
        assert "Not a finite amount" in result.output


class TestDemo:
    """Tests for the in-memory demo."""

    def test_claim_scenario(self, runner, data_dir):
        result = invoke(runner, data_dir, "demo", "--scenario", "claim")
        assert result.exit_code == 0, result.output
        assert "Alice balance: 5,200" in result.output

    def test_withdraw_scenario(self, runner, data_dir):
        result = invoke(runner, data_dir, "demo", "--scenario", "withdraw")
        assert result.exit_code == 0, result.output
        assert "Alice balance: 2,000" in result.output
        assert "Total staked: 0" in result.output
