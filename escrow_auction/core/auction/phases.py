"""
Auction lifecycle phases.

Pending -> Active -> Ended -> Finalized, strictly forward. The
Active -> Ended step is never scheduled: it is observed by calling
``effective_phase`` with the current time at the start of every
operation.
"""

from enum import IntEnum


class AuctionPhase(IntEnum):
    """Lifecycle stage of the auction."""
    PENDING = 0     # Created, not started
    ACTIVE = 1      # Accepting bids
    ENDED = 2       # Past end_time, awaiting finalize
    FINALIZED = 3   # Settled by the operator


def effective_phase(phase: AuctionPhase, end_time: int, now: int) -> AuctionPhase:
    """Phase as of ``now``, applying the time-driven Active -> Ended step."""
    if phase == AuctionPhase.ACTIVE and now >= end_time:
        return AuctionPhase.ENDED
    return phase
