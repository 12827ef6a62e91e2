"""Escrow ledger and balance bookkeeping"""
from escrow_auction.core.state.ledger import (
    Ledger,
    LedgerCheckpoint,
    ParticipantRecord,
    Identity,
)

__all__ = [
    "Ledger",
    "LedgerCheckpoint",
    "ParticipantRecord",
    "Identity",
]
