"""
Logging for Stake Ledger.

Every module logs under "stakeledger.<subsystem>":

    staking            stake, claim, withdraw and owner calls
    staking.schedule   reward periods, funding, settlement
    token              mints and transfers
    storage.sqlite     SQLite adapter
    storage.manager    storage transactions and rollbacks
    config             resolved configuration
    cli                command line

Importing the library configures a quiet WARNING-level console handler
and never writes files. The CLI calls setup_logging() to raise the level
and add a log file under the data directory.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog


class StakeLedgerLogger:
    """Centralized logger for Stake Ledger components"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = True,
    ):
        """
        Setup logging configuration.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_dir: Directory for log files. If None, uses ./logs
            log_to_file: Whether to write logs to file
        """
        if cls._initialized:
            return

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger("stakeledger")
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        # Console handler with colors
        console_handler = colorlog.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

        if log_to_file and cls._log_dir:
            file_handler = logging.FileHandler(cls._log_dir / "stakeledger.log")
            file_handler.setLevel(level)
            file_formatter = logging.Formatter(
                "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Library code never writes log files on its own; file output is
        enabled by an explicit setup() call (the CLI does this).

        Args:
            name: Subsystem name (e.g., 'staking', 'token', 'storage')

        Returns:
            Logger instance
        """
        if not cls._initialized:
            cls.setup(level=logging.WARNING, log_to_file=False)

        return logging.getLogger(f"stakeledger.{name}")

    @classmethod
    def reset(cls):
        """Forget the current configuration so setup() runs again."""
        logging.getLogger("stakeledger").handlers.clear()
        cls._initialized = False
        cls._log_dir = None


# Convenience functions
def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return StakeLedgerLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = True,
):
    """Setup logging configuration, replacing any earlier default setup"""
    StakeLedgerLogger.reset()
    StakeLedgerLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
