"""
Auction Module.

This module provides the auction lifecycle on top of the escrow ledger:
- Phase state machine with lazy time-driven ending
- Bid validation, minimum increment and end-time extension
- Excess withdrawal, settlement and operator payouts
- Event emission for observers
"""

from escrow_auction.core.auction.phases import (
    AuctionPhase,
    effective_phase,
)

from escrow_auction.core.auction.events import (
    AuctionEvent,
    EventBus,
    EventType,
)

from escrow_auction.core.auction.controller import (
    AuctionController,
    AuctionSnapshot,
    BidRecord,
    DistributionReport,
    Refund,
)

__all__ = [
    # Phases
    "AuctionPhase",
    "effective_phase",
    # Events
    "AuctionEvent",
    "EventBus",
    "EventType",
    # Controller
    "AuctionController",
    "AuctionSnapshot",
    "BidRecord",
    "DistributionReport",
    "Refund",
]
