"""
Clock - time sources for the staking ledger.

The ledger never reads wall-clock time directly. Production code uses
SystemClock; tests and simulations use ManualClock and advance it the
way a local chain's time.increase() does.
"""

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of unix timestamps in whole seconds."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> int:
        return int(time.time())

    def __repr__(self) -> str:
        return "SystemClock()"


class ManualClock:
    """
    Deterministic clock advanced explicitly.

    Args:
        start: Initial timestamp
    """

    def __init__(self, start: int = 1_700_000_000):
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move time forward and return the new timestamp."""
        if seconds < 0:
            raise ValueError(f"Cannot move time backwards: {seconds}")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> None:
        """Jump to an absolute timestamp (never backwards)."""
        if timestamp < self._now:
            raise ValueError(f"Cannot move time backwards: {timestamp} < {self._now}")
        self._now = int(timestamp)

    def __repr__(self) -> str:
        return f"ManualClock(now={self._now})"
