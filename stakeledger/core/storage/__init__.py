"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Staking positions and reward schedules
- Token balances and supply
- Deployment metadata
"""

from stakeledger.core.storage.sqlite_adapter import SQLiteAdapter
from stakeledger.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
