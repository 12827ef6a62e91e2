"""
Escrow Auction

A single-lot ascending auction with operator-controlled escrow:
- Lifecycle state machine (Pending, Active, Ended, Finalized)
- Anti-sniping end-time extension
- Per-participant deposit ledger with excess withdrawal
- Commission-bearing settlement of remaining funds
"""

__version__ = "0.1.0"
