"""
Ledger - fund custody for the escrow auction.

Conceptual Background:
---------------------
The Ledger owns every unit of money the auction holds:

1. **Participant records**: cumulative deposit and standing bid per bidder
2. **High bid**: the current winning amount and who holds it
3. **Commission pool**: commission accrued by settlement, owed to the operator
4. **Escrow balance**: everything received minus everything paid out

Accounting identity:
-------------------
    escrow_balance = sum(total_deposited) + commission_pool + residual

where ``residual >= 0`` is money nobody in the ledger has a claim on
(e.g. unsolicited deposits). Only the emergency sweep may pay it out.

Per-participant invariant: ``total_deposited >= last_bid_amount``. The
difference is the withdrawable excess.

Rollback:
--------
``atomic()`` checkpoints the touched records and the scalar fields and
restores them if the guarded block raises. The controller wraps every
effect-then-transfer sequence in it so a failed payment leaves no trace.
"""

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Hashable, Iterator, Optional, Tuple

from escrow_auction.core.errors import (
    AlreadySettled,
    LedgerInvariantError,
    NothingToWithdraw,
)
from escrow_auction.utils.logger import get_logger
from escrow_auction.utils.validation import MAX_AMOUNT

logger = get_logger("ledger")

Identity = Hashable


# =============================================================================
# Ledger State
# =============================================================================


@dataclass
class ParticipantRecord:
    """
    Balances held for one bidder.

    Attributes:
        identity: The bidder
        total_deposited: Funds held for this bidder
        last_bid_amount: Amount of their most recent accepted bid
    """
    identity: Identity
    total_deposited: int = 0
    last_bid_amount: int = 0

    @property
    def excess(self) -> int:
        return self.total_deposited - self.last_bid_amount


@dataclass(frozen=True)
class LedgerCheckpoint:
    """Saved copy of ledger fields, restored on rollback."""
    records: Dict[Identity, Optional[ParticipantRecord]]
    high_bid: int
    high_bidder: Optional[Identity]
    winner_paid: bool
    commission_pool: int
    escrow_balance: int


def _checked_add(a: int, b: int, name: str) -> int:
    total = a + b
    if total > MAX_AMOUNT:
        raise LedgerInvariantError(f"{name} overflow: {a} + {b} > {MAX_AMOUNT}")
    return total


class Ledger:
    """
    Deposit ledger with commission accounting.

    Pure bookkeeping: it trusts the controller for auction semantics
    (phase, minimum bid, caller checks) and only guards arithmetic and
    accounting invariants.

    Attributes:
        participants: identity -> ParticipantRecord, in first-bid order
        high_bid: Current winning amount (starting price before any bid)
        high_bidder: Identity of the current leader, None before any bid
        winner_paid: Whether the winning bid has been paid out
        commission_pool: Commission owed to the operator
        escrow_balance: Funds physically held by the escrow
    """

    def __init__(self, starting_price: int, commission_pct: int):
        """
        Initialize the ledger.

        Args:
            starting_price: Minimum acceptable first bid
            commission_pct: Percentage retained from each settlement
        """
        self.participants: Dict[Identity, ParticipantRecord] = {}

        self.high_bid = starting_price
        self.high_bidder: Optional[Identity] = None
        self.winner_paid = False

        self.commission_pct = commission_pct
        self.commission_pool = 0
        self.escrow_balance = 0

    # =========================================================================
    # State Access
    # =========================================================================

    def get_record(self, identity: Identity) -> Optional[ParticipantRecord]:
        return self.participants.get(identity)

    def total_deposited(self, identity: Identity) -> int:
        record = self.participants.get(identity)
        return record.total_deposited if record else 0

    def last_bid_amount(self, identity: Identity) -> int:
        record = self.participants.get(identity)
        return record.last_bid_amount if record else 0

    def withdrawable_excess(self, identity: Identity) -> int:
        """Deposit beyond the participant's standing bid."""
        record = self.participants.get(identity)
        if record is None:
            return 0
        excess = record.excess
        if excess < 0:
            raise LedgerInvariantError(
                f"{identity!r}: deposited {record.total_deposited} < bid {record.last_bid_amount}"
            )
        return excess

    @property
    def total_held_for_participants(self) -> int:
        return sum(r.total_deposited for r in self.participants.values())

    @property
    def residual(self) -> int:
        """Escrow funds not claimed by any participant or the commission pool."""
        return self.escrow_balance - self.total_held_for_participants - self.commission_pool

    # =========================================================================
    # Deposits
    # =========================================================================

    def record_bid(self, identity: Identity, declared_amount: int, deposited_value: int) -> ParticipantRecord:
        """
        Credit a bid's deposit and make it the participant's standing bid.

        The controller has already checked the bid against the minimum and
        the deposit against the bid.
        """
        record = self.participants.get(identity)
        current = record.total_deposited if record else 0

        new_total = _checked_add(current, deposited_value, "total_deposited")
        if new_total < declared_amount:
            raise LedgerInvariantError(
                f"{identity!r}: bid {declared_amount} exceeds total deposit {new_total}"
            )
        self.escrow_balance = _checked_add(self.escrow_balance, deposited_value, "escrow_balance")

        if record is None:
            record = ParticipantRecord(identity=identity)
            self.participants[identity] = record
        record.total_deposited = new_total
        record.last_bid_amount = declared_amount

        logger.debug(f"Recorded bid {declared_amount} from {identity!r} (deposit {deposited_value}, total {new_total})")
        return record

    def set_high_bid(self, identity: Identity, amount: int) -> None:
        """Make ``identity`` the leader at ``amount``; bids must strictly increase."""
        if self.high_bidder is not None and amount <= self.high_bid:
            raise LedgerInvariantError(f"High bid must increase: {amount} <= {self.high_bid}")
        self.high_bid = amount
        self.high_bidder = identity

    def receive_funds(self, amount: int) -> None:
        """Credit funds that arrived outside of a bid."""
        self.escrow_balance = _checked_add(self.escrow_balance, amount, "escrow_balance")

    # =========================================================================
    # Withdrawals
    # =========================================================================

    def _debit(self, amount: int) -> None:
        if amount > self.escrow_balance:
            raise LedgerInvariantError(f"Escrow underflow: paying {amount} from {self.escrow_balance}")
        self.escrow_balance -= amount

    def apply_excess_withdrawal(self, identity: Identity, amount: int) -> int:
        """Remove ``amount`` of excess from a participant's deposit."""
        excess = self.withdrawable_excess(identity)
        if amount <= 0 or amount > excess:
            raise LedgerInvariantError(
                f"{identity!r}: excess withdrawal {amount} outside (0, {excess}]"
            )

        record = self.participants[identity]
        record.total_deposited -= amount
        self._debit(amount)
        return amount

    def settle_participant(self, identity: Identity) -> Tuple[int, int]:
        """
        Zero a participant's balance for final distribution.

        Returns:
            (payout, commission); (0, 0) if nothing is held for them
        """
        record = self.participants.get(identity)
        if record is None or record.total_deposited == 0:
            return 0, 0

        total = record.total_deposited
        commission = total * self.commission_pct // 100
        payout = total - commission

        record.total_deposited = 0
        record.last_bid_amount = 0
        self._debit(payout)

        logger.debug(f"Settled {identity!r}: payout={payout}, commission={commission}")
        return payout, commission

    def accrue_commission(self, amount: int) -> None:
        self.commission_pool = _checked_add(self.commission_pool, amount, "commission_pool")

    def withdraw_winning_bid(self) -> int:
        """
        Release the winning amount from the winner's deposit. One-shot.

        The winner keeps any excess, which is settled later with everyone
        else. Their standing bid is cleared since it has now been paid.
        """
        if self.winner_paid:
            raise AlreadySettled("Winning bid already withdrawn")
        if self.high_bidder is None:
            raise NothingToWithdraw("No winning bid to withdraw")

        record = self.participants[self.high_bidder]
        if record.total_deposited < self.high_bid:
            raise LedgerInvariantError(
                f"Winner deposit {record.total_deposited} below winning bid {self.high_bid}"
            )

        amount = self.high_bid
        record.total_deposited -= amount
        record.last_bid_amount = 0
        self._debit(amount)
        self.winner_paid = True
        return amount

    def withdraw_commission_pool(self) -> int:
        """Empty the commission pool and return what it held."""
        amount = self.commission_pool
        if amount == 0:
            raise NothingToWithdraw("Commission pool is empty")

        self.commission_pool = 0
        self._debit(amount)
        return amount

    def sweep_residual(self) -> int:
        """Pay out funds that no ledger entry accounts for."""
        amount = self.residual
        if amount <= 0:
            raise NothingToWithdraw("No unaccounted funds in escrow")

        self._debit(amount)
        return amount

    # =========================================================================
    # Rollback
    # =========================================================================

    def checkpoint(self, *identities: Identity) -> LedgerCheckpoint:
        """
        Save the scalar fields plus the given participants' records.

        With no identities every record is saved.
        """
        keys = identities if identities else tuple(self.participants)
        records = {}
        for identity in keys:
            record = self.participants.get(identity)
            records[identity] = replace(record) if record is not None else None

        return LedgerCheckpoint(
            records=records,
            high_bid=self.high_bid,
            high_bidder=self.high_bidder,
            winner_paid=self.winner_paid,
            commission_pool=self.commission_pool,
            escrow_balance=self.escrow_balance,
        )

    def rollback(self, checkpoint: LedgerCheckpoint) -> None:
        for identity, saved in checkpoint.records.items():
            if saved is None:
                self.participants.pop(identity, None)
            else:
                self.participants[identity] = replace(saved)

        self.high_bid = checkpoint.high_bid
        self.high_bidder = checkpoint.high_bidder
        self.winner_paid = checkpoint.winner_paid
        self.commission_pool = checkpoint.commission_pool
        self.escrow_balance = checkpoint.escrow_balance

    @contextmanager
    def atomic(self, *identities: Identity) -> Iterator[None]:
        """Undo every change made inside the block if it raises."""
        checkpoint = self.checkpoint(*identities)
        try:
            yield
        except BaseException:
            self.rollback(checkpoint)
            logger.debug("Ledger rolled back")
            raise

    # =========================================================================
    # Utility
    # =========================================================================

    def check_invariants(self) -> None:
        """Raise LedgerInvariantError if any accounting invariant is broken."""
        for record in self.participants.values():
            if record.total_deposited < 0 or record.last_bid_amount < 0:
                raise LedgerInvariantError(f"{record.identity!r}: negative balance")
            if record.total_deposited < record.last_bid_amount:
                raise LedgerInvariantError(
                    f"{record.identity!r}: deposited {record.total_deposited} < bid {record.last_bid_amount}"
                )
        if self.commission_pool < 0:
            raise LedgerInvariantError("Negative commission pool")
        if self.residual < 0:
            raise LedgerInvariantError(
                f"Escrow {self.escrow_balance} does not cover liabilities "
                f"{self.total_held_for_participants + self.commission_pool}"
            )

    def __repr__(self) -> str:
        return (
            f"Ledger(participants={len(self.participants)}, high_bid={self.high_bid}, "
            f"escrow={self.escrow_balance}, pool={self.commission_pool})"
        )

    def stats(self) -> dict:
        """Get ledger statistics."""
        return {
            "participant_count": len(self.participants),
            "high_bid": self.high_bid,
            "high_bidder": self.high_bidder,
            "winner_paid": self.winner_paid,
            "commission_pool": self.commission_pool,
            "escrow_balance": self.escrow_balance,
            "held_for_participants": self.total_held_for_participants,
            "residual": self.residual,
        }
