"""Core staking ledger components"""
