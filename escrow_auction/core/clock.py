"""
Clocks - time sources for the auction controller.

The controller never schedules anything; it only reads the clock at
the start of each operation to derive the effective phase.
"""

import threading
import time

from escrow_auction.utils.validation import validate_timestamp


class SystemClock:
    """Wall-clock time in whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests and the demo to step through an auction
    deterministically.
    """

    def __init__(self, start: int = 0):
        valid, err = validate_timestamp(start, "start")
        if not valid:
            raise ValueError(err)
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        """Move forward by ``seconds`` and return the new time."""
        if seconds < 0:
            raise ValueError("clock cannot move backwards")
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, timestamp: int) -> None:
        valid, err = validate_timestamp(timestamp)
        if not valid:
            raise ValueError(err)
        with self._lock:
            if timestamp < self._now:
                raise ValueError("clock cannot move backwards")
            self._now = timestamp
