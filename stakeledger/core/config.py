"""
Ledger configuration parameters for Stake Ledger.

Defines the withdrawal cool-down, reward precision, staking cap and
operational paths.
"""

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from stakeledger.utils.logger import get_logger

logger = get_logger("config")


# Cool-down between request_withdraw() and withdraw(): 48 hours
WITHDRAW_DELAY = 172_800

# Fixed-point scale for reward-per-token
REWARD_PRECISION = 10**18

# Custody account of a ledger when none is configured
DEFAULT_LEDGER_ADDRESS = "staking-ledger"

ENV_PREFIX = "STAKELEDGER_"


@dataclass
class StakingConfig:
    """Per-ledger configuration parameters"""

    # Withdrawal timer
    withdraw_delay: int = WITHDRAW_DELAY  # Seconds between request and withdraw

    # Reward scheduler
    reward_precision: int = REWARD_PRECISION  # Fixed-point scale
    staking_cap: Optional[int] = None  # Rewards paid as if at least this much was staked

    # Identity
    ledger_address: str = DEFAULT_LEDGER_ADDRESS  # Custody account on the token ledger

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")

    def __post_init__(self):
        """Validate parameters"""
        if self.withdraw_delay < 0:
            raise ValueError(f"withdraw_delay must be >= 0, got {self.withdraw_delay}")
        if self.reward_precision <= 0:
            raise ValueError(f"reward_precision must be > 0, got {self.reward_precision}")
        if self.staking_cap is not None and self.staking_cap <= 0:
            raise ValueError(f"staking_cap must be > 0, got {self.staking_cap}")
        self.data_dir = Path(self.data_dir)
        self.log_dir = Path(self.log_dir)


class StakingConfigFile(BaseModel):
    """Schema of a JSON configuration file. Unset fields keep their defaults."""

    model_config = ConfigDict(extra="forbid")

    withdraw_delay: Optional[int] = Field(default=None, ge=0)
    reward_precision: Optional[int] = Field(default=None, gt=0)
    staking_cap: Optional[int] = Field(default=None, gt=0)
    ledger_address: Optional[str] = Field(default=None, min_length=1)
    data_dir: Optional[Path] = None
    log_dir: Optional[Path] = None


def _env_overrides() -> dict:
    """Collect STAKELEDGER_* environment overrides."""
    overrides = {}
    for field_name in StakingConfigFile.model_fields:
        raw = os.environ.get(ENV_PREFIX + field_name.upper())
        if raw is not None and raw != "":
            overrides[field_name] = raw
    return overrides


def load_config(config_path: Optional[str] = None, env_file: Optional[str] = None) -> StakingConfig:
    """
    Load configuration from environment and file, falling back to defaults.

    Precedence (lowest to highest): defaults, .env / environment
    variables, JSON config file.

    Args:
        config_path: Optional path to a JSON config file
        env_file: Optional .env file (defaults to searching the cwd)

    Returns:
        StakingConfig instance

    Raises:
        pydantic.ValidationError: If a value has the wrong type or range
    """
    load_dotenv(env_file or find_dotenv(usecwd=True), override=False)

    values = StakingConfigFile.model_validate(_env_overrides()).model_dump(exclude_none=True)

    if config_path:
        text = Path(config_path).read_text(encoding="utf-8")
        from_file = StakingConfigFile.model_validate(json.loads(text))
        values.update(from_file.model_dump(exclude_none=True))
        logger.debug(f"Loaded config file {config_path}")

    config = replace(StakingConfig(), **values)
    logger.debug(f"Config: withdraw_delay={config.withdraw_delay}, staking_cap={config.staking_cap}")
    return config
