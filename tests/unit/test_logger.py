"""
Unit tests for logging setup.
"""

import logging

import pytest

from stakeledger.utils.logger import StakeLedgerLogger, get_logger, setup_logging


class TestLogging:
    """Tests for the subsystem loggers."""

    def test_subsystem_names(self):
        assert get_logger("staking").name == "stakeledger.staking"

    def test_implicit_setup_writes_no_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        StakeLedgerLogger.reset()

        get_logger("token").warning("no file")

        assert not (tmp_path / "logs").exists()

    def test_setup_logging_writes_file(self, tmp_path):
        setup_logging(level=logging.DEBUG, log_dir=str(tmp_path / "logs"))

        get_logger("staking").info("stake recorded")
        for handler in logging.getLogger("stakeledger").handlers:
            handler.flush()

        content = (tmp_path / "logs" / "stakeledger.log").read_text()
        assert "[stakeledger.staking]" in content
        assert "stake recorded" in content

    def test_modules_log_under_their_subsystem(self):
        from stakeledger.cli import main
        from stakeledger.core import config
        from stakeledger.core.staking import ledger, schedule
        from stakeledger.core.storage import sqlite_adapter, storage_manager
        from stakeledger.core.token import token_ledger

        names = {
            module.logger.name
            for module in (main, config, ledger, schedule, sqlite_adapter, storage_manager, token_ledger)
        }
        assert names == {
            "stakeledger.cli",
            "stakeledger.config",
            "stakeledger.staking",
            "stakeledger.staking.schedule",
            "stakeledger.storage.sqlite",
            "stakeledger.storage.manager",
            "stakeledger.token",
        }

    def test_failed_write_rollback_is_logged(self, tmp_path, caplog):
        from stakeledger.core.storage import StorageManager

        storage = StorageManager(data_dir=tmp_path / "data")
        with caplog.at_level(logging.DEBUG, logger="stakeledger.storage.manager"):
            with pytest.raises(RuntimeError):
                with storage.transaction():
                    raise RuntimeError("boom")
        storage.close()

        assert "rolled back" in caplog.text
