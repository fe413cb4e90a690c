"""Fungible token ledger used as the staking ledger's collaborator"""
from stakeledger.core.token.token_ledger import (
    TokenLedger,
    TokenLedgerProtocol,
    create_bep20,
    DECIMALS,
    UNIT,
    DEFAULT_TOTAL_SUPPLY,
)

__all__ = [
    "TokenLedger",
    "TokenLedgerProtocol",
    "create_bep20",
    "DECIMALS",
    "UNIT",
    "DEFAULT_TOTAL_SUPPLY",
]
