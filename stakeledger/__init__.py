"""
Stake Ledger

A deterministic off-chain staking ledger:
- Stake accounting over a BEP20-style token ledger
- Linear reward distribution over a fixed period
- Request/execute withdrawals behind a cool-down
- SQLite persistence and a click CLI
"""

__version__ = "0.1.0"
