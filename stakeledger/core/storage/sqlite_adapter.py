import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from stakeledger.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Metadata store (CLI settings, deployment parameters)
    2. Staking state: positions and per-ledger state (schedule, owner)
    3. Token state: balances and total supply per token symbol

    Amounts are uint256 and overflow SQLite's 64-bit integers, so they are
    stored as decimal TEXT and converted by the caller.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Metadata
            conn.execute("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            # 2. Staking positions (one row per ledger/account)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS positions (
                    ledger TEXT NOT NULL,
                    account TEXT NOT NULL,
                    staked TEXT NOT NULL,
                    reward_claimed INTEGER NOT NULL DEFAULT 0,
                    withdraw_requested_at INTEGER,
                    PRIMARY KEY (ledger, account)
                )
            """)

            # 3. Ledger state (schedule, owner)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ledger_state (
                    ledger TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT,
                    PRIMARY KEY (ledger, key)
                )
            """)

            # 4. Token balances
            conn.execute("""
                CREATE TABLE IF NOT EXISTS token_balances (
                    token TEXT NOT NULL,
                    account TEXT NOT NULL,
                    balance TEXT NOT NULL,
                    PRIMARY KEY (token, account)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS token_supply (
                    token TEXT PRIMARY KEY,
                    supply TEXT NOT NULL
                )
            """)

    def close(self):
        """Close the connection of the current thread."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Group writes of the current thread into one SQLite transaction.

        Nested calls join the outermost transaction; only the outermost
        one commits, and any exception rolls back every write in it.
        """
        conn = self._get_conn()
        depth = getattr(self._conn_local, "depth", 0)
        self._conn_local.depth = depth + 1
        try:
            if depth:
                yield conn
            else:
                with conn:
                    yield conn
        finally:
            self._conn_local.depth = depth

    # =========================================================================
    # Metadata Operations
    # =========================================================================

    def set_meta(self, key: str, value: str):
        with self.transaction() as conn:
            conn.execute("INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)", (key, value))

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    # =========================================================================
    # Staking Operations
    # =========================================================================

    def get_positions(self, ledger: str) -> List[Tuple[str, dict]]:
        """Get all (account, position_dict) of a ledger."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT account, staked, reward_claimed, withdraw_requested_at FROM positions WHERE ledger = ?",
            (ledger,)
        )
        return [
            (
                row['account'],
                {
                    "staked": int(row['staked']),
                    "reward_claimed": bool(row['reward_claimed']),
                    "withdraw_requested_at": row['withdraw_requested_at'],
                },
            )
            for row in cursor
        ]

    def get_ledger_state(self, ledger: str) -> Dict[str, str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT key, value FROM ledger_state WHERE ledger = ?", (ledger,))
        return {row['key']: row['value'] for row in cursor}

    def persist_ledger_update(
        self,
        ledger: str,
        positions: Dict[str, dict],
        state: Dict[str, str],
    ):
        """
        Atomically update staking state after one ledger operation.

        Args:
            ledger: Ledger custody address
            positions: account -> position dict of changed positions
            state: key -> value of ledger state to overwrite
        """
        with self.transaction() as conn:
            for account, pos in positions.items():
                conn.execute(
                    "INSERT OR REPLACE INTO positions "
                    "(ledger, account, staked, reward_claimed, withdraw_requested_at) VALUES (?, ?, ?, ?, ?)",
                    (
                        ledger,
                        account,
                        str(pos["staked"]),
                        int(pos["reward_claimed"]),
                        pos["withdraw_requested_at"],
                    )
                )

            for key, value in state.items():
                conn.execute(
                    "INSERT OR REPLACE INTO ledger_state (ledger, key, value) VALUES (?, ?, ?)",
                    (ledger, key, value)
                )

    # =========================================================================
    # Token Operations
    # =========================================================================

    def get_token_supply(self, token: str) -> int:
        conn = self._get_conn()
        cursor = conn.execute("SELECT supply FROM token_supply WHERE token = ?", (token,))
        row = cursor.fetchone()
        return int(row['supply']) if row else 0

    def get_token_balances(self, token: str) -> Dict[str, int]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT account, balance FROM token_balances WHERE token = ?", (token,))
        return {row['account']: int(row['balance']) for row in cursor}

    def persist_token_update(self, token: str, supply: int, balances: Dict[str, int]):
        """Atomically write changed balances and the token's supply."""
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO token_supply (token, supply) VALUES (?, ?)",
                (token, str(supply))
            )
            conn.executemany(
                "INSERT OR REPLACE INTO token_balances (token, account, balance) VALUES (?, ?, ?)",
                [(token, account, str(balance)) for account, balance in balances.items()]
            )
