import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional, Tuple

from stakeledger.core.storage.sqlite_adapter import SQLiteAdapter
from stakeledger.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for a ledger deployment.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Staking state (positions, schedule, owner)
    - Token state (balances, supply)
    - Metadata (deployment parameters used by the CLI)
    """

    def __init__(self, data_dir: Path, db_name: str = "ledger.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)
        self._local = threading.local()

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run a unit of work as one storage transaction.

        Every persist_* call made inside joins the same SQLite transaction.
        If the block raises (or the commit fails), the writes are rolled
        back and the callbacks registered with on_rollback() run in reverse
        order, so in-memory state matches what is on disk again.
        """
        outermost = getattr(self._local, "undo", None) is None
        if outermost:
            self._local.undo = []
        try:
            with self.adapter.transaction():
                yield
        except BaseException:
            if outermost:
                undo = self._local.undo
                logger.debug(f"Storage transaction rolled back, restoring {len(undo)} in-memory change(s)")
                for callback in reversed(undo):
                    callback()
            raise
        finally:
            if outermost:
                self._local.undo = None

    def on_rollback(self, callback: Callable[[], None]) -> None:
        """Register an in-memory undo for the current transaction (no-op outside one)."""
        undo = getattr(self._local, "undo", None)
        if undo is not None:
            undo.append(callback)

    # =========================================================================
    # Metadata
    # =========================================================================

    def save_meta(self, values: Dict[str, str]):
        """Save deployment metadata."""
        for key, value in values.items():
            self.adapter.set_meta(key, value)

    def get_meta(self, key: str) -> Optional[str]:
        return self.adapter.get_meta(key)

    def is_initialized(self) -> bool:
        return self.adapter.get_meta("ledger_address") is not None

    # =========================================================================
    # Staking Ledger Support
    # =========================================================================

    def load_ledger_state(self, ledger: str) -> Tuple[Dict[str, dict], Dict[str, str]]:
        """
        Load full staking state of one ledger.

        Returns:
            (positions, state)
            positions: account -> position dict
            state: key -> value (owner, schedule JSON)
        """
        positions = dict(self.adapter.get_positions(ledger))
        state = self.adapter.get_ledger_state(ledger)
        return positions, state

    def persist_ledger_update(
        self,
        ledger: str,
        positions: Dict[str, dict],
        state: Dict[str, str],
    ):
        """Atomically persist a staking ledger update."""
        self.adapter.persist_ledger_update(ledger, positions, state)

    # =========================================================================
    # Token Ledger Support
    # =========================================================================

    def load_token_state(self, token: str) -> Tuple[int, Dict[str, int]]:
        """
        Load supply and balances of a token.

        Returns:
            (supply, balances)
        """
        return self.adapter.get_token_supply(token), self.adapter.get_token_balances(token)

    def persist_token_update(self, token: str, supply: int, balances: Dict[str, int]):
        """Atomically persist changed token balances."""
        self.adapter.persist_token_update(token, supply, balances)
