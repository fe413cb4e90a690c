"""
Token Ledger - BEP20-style fungible token bookkeeping.

The staking ledger treats the token ledger as an external collaborator
and only talks to it through TokenLedgerProtocol. TokenLedger is the
in-process implementation used by the CLI, the demo and the tests.

Approvals and allowances are not modelled: transfer_from() is a unified
custody pull, authorised by the caller of the staking ledger.
"""

import threading
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from stakeledger.core.errors import InvalidAmount, TransferFailed
from stakeledger.utils.logger import get_logger
from stakeledger.utils.validation import validate_account, validate_amount

if TYPE_CHECKING:
    from stakeledger.core.storage.storage_manager import StorageManager

logger = get_logger("token")


# =============================================================================
# Constants
# =============================================================================

DECIMALS = 18

# One whole token in base units
UNIT = 10**DECIMALS

# Supply minted to the deployer of the reference BEP20 token
DEFAULT_TOTAL_SUPPLY = 500_000_000 * UNIT


# =============================================================================
# Interface
# =============================================================================


@runtime_checkable
class TokenLedgerProtocol(Protocol):
    """Operations the staking ledger needs from a token ledger."""

    symbol: str

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        ...

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...

    def total_supply(self) -> int:
        ...


# =============================================================================
# In-memory Token Ledger
# =============================================================================


class TokenLedger:
    """
    Account -> balance mapping with a fixed total supply.

    Attributes:
        name: Token name
        symbol: Ticker, also the persistence key of the balances
        decimals: Display decimals
        balances: Mapping of account to balance
    """

    def __init__(
        self,
        name: str = "BEP20 Token",
        symbol: str = "TKN",
        decimals: int = DECIMALS,
        storage_manager: Optional["StorageManager"] = None,
    ):
        """
        Initialize the token ledger.

        Args:
            name: Token name
            symbol: Token symbol
            decimals: Display decimals
            storage_manager: Persistence manager. None = in-memory only.
        """
        self.name = name
        self.symbol = symbol
        self.decimals = decimals

        self.balances: Dict[str, int] = {}
        self._total_supply = 0
        self._lock = threading.RLock()

        self.storage_manager = storage_manager
        if storage_manager:
            self._load_from_storage()

    # =========================================================================
    # Reads
    # =========================================================================

    def balance_of(self, account: str) -> int:
        """Balance of an account (0 if unknown)."""
        with self._lock:
            return self.balances.get(account, 0)

    def total_supply(self) -> int:
        """Total minted supply."""
        with self._lock:
            return self._total_supply

    # =========================================================================
    # Supply
    # =========================================================================

    def mint(self, to: str, amount: int) -> None:
        """
        Create new tokens. Used for genesis allocation.

        Args:
            to: Receiving account
            amount: Amount in base units
        """
        self._check_account(to)
        self._check_amount(amount)

        with self._lock:
            captured = self._capture([to])
            self.balances[to] = self.balances.get(to, 0) + amount
            self._total_supply += amount
            self._persist(captured)

        logger.info(f"Minted {amount} {self.symbol} to {to}")

    # =========================================================================
    # Transfers
    # =========================================================================

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """
        Move tokens from sender to another account.

        Args:
            sender: Account debited
            to: Account credited
            amount: Amount in base units

        Returns:
            True on success

        Raises:
            TransferFailed: If sender's balance is insufficient
        """
        self._check_account(sender)
        self._check_account(to)
        self._check_amount(amount)

        with self._lock:
            balance = self.balances.get(sender, 0)
            if balance < amount:
                logger.warning(f"{self.symbol} transfer {sender} -> {to} of {amount} rejected: balance {balance}")
                raise TransferFailed(
                    f"{self.symbol}: transfer amount exceeds balance ({balance} < {amount})"
                )

            captured = self._capture([sender, to])
            self.balances[sender] = balance - amount
            self.balances[to] = self.balances.get(to, 0) + amount
            self._persist(captured)

        logger.debug(f"{self.symbol} transfer {sender} -> {to}: {amount}")
        return True

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        """
        Pull tokens from owner into another account.

        Custody pull used by the staking ledger; equivalent to an
        approve + transferFrom pair with unlimited allowance.
        """
        return self.transfer(owner, to, amount)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _check_amount(amount: int) -> None:
        is_valid, error = validate_amount(amount)
        if not is_valid:
            raise InvalidAmount(error)

    @staticmethod
    def _check_account(account: str) -> None:
        is_valid, error = validate_account(account)
        if not is_valid:
            raise InvalidAmount(error)

    def _capture(self, accounts: List[str]) -> Tuple[int, Dict[str, Optional[int]]]:
        """Supply and balances of `accounts` before a change (None = no entry)."""
        return self._total_supply, {a: self.balances.get(a) for a in accounts}

    def _restore(self, captured: Tuple[int, Dict[str, Optional[int]]]) -> None:
        supply, balances = captured
        with self._lock:
            self._total_supply = supply
            for account, balance in balances.items():
                if balance is None:
                    self.balances.pop(account, None)
                else:
                    self.balances[account] = balance
        logger.debug(f"{self.symbol} restored {len(balances)} balance(s) after failed write")

    def _persist(self, captured: Tuple[int, Dict[str, Optional[int]]]) -> None:
        """Write the accounts in `captured`; undo the in-memory change if the write fails."""
        if not self.storage_manager:
            return
        changed = {a: self.balances.get(a, 0) for a in captured[1]}
        with self.storage_manager.transaction():
            self.storage_manager.on_rollback(lambda: self._restore(captured))
            self.storage_manager.persist_token_update(self.symbol, self._total_supply, changed)

    def _load_from_storage(self) -> None:
        """Load balances from storage manager."""
        supply, balances = self.storage_manager.load_token_state(self.symbol)
        self.balances.update(balances)
        self._total_supply = supply
        logger.info(f"Loaded {self.symbol}: {len(self.balances)} accounts, supply={self._total_supply}")

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return f"TokenLedger(symbol={self.symbol}, accounts={len(self.balances)}, supply={self._total_supply})"

    def stats(self) -> dict:
        """Get token statistics."""
        with self._lock:
            return {
                "name": self.name,
                "symbol": self.symbol,
                "decimals": self.decimals,
                "total_supply": self._total_supply,
                "holders": sum(1 for b in self.balances.values() if b > 0),
            }


def create_bep20(
    owner: str,
    supply: int = DEFAULT_TOTAL_SUPPLY,
    name: str = "BEP20 Token",
    symbol: str = "TKN",
    storage_manager: Optional["StorageManager"] = None,
) -> TokenLedger:
    """
    Deploy a token with its whole supply minted to the owner.

    Args:
        owner: Deployer account receiving the supply
        supply: Total supply in base units
        name: Token name
        symbol: Token symbol
        storage_manager: Optional persistence

    Returns:
        TokenLedger instance
    """
    token = TokenLedger(name=name, symbol=symbol, storage_manager=storage_manager)
    token.mint(owner, supply)
    return token
