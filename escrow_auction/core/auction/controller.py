"""
Auction Controller - lifecycle state machine over the escrow ledger.

Every public operation follows the same order:

1. Read the clock and derive the effective phase (lazy Active -> Ended)
2. Check caller identity and phase preconditions
3. Mutate the ledger
4. Perform the outbound transfer, if any
5. Emit an event

Steps 3 and 4 run inside ``Ledger.atomic`` so a failed transfer undoes
the ledger mutation and the caller sees only ``TransferFailed``.

All operations, reads included, are serialized by one re-entrant lock,
so concurrent callers always observe a fully consistent prior state.
"""

import threading
from dataclasses import dataclass
from typing import Hashable, List, Optional, Tuple

from escrow_auction.core.auction.events import AuctionEvent, EventBus, EventType
from escrow_auction.core.auction.phases import AuctionPhase, effective_phase
from escrow_auction.core.clock import SystemClock
from escrow_auction.core.config import AuctionConfig
from escrow_auction.core.errors import (
    BidTooLow,
    InsufficientDeposit,
    InvalidInput,
    InvalidPhase,
    LimitExceeded,
    NoExcessAvailable,
    TransferFailed,
    Unauthorized,
)
from escrow_auction.core.state.ledger import Ledger
from escrow_auction.core.transfer import TransferGateway
from escrow_auction.utils.logger import get_logger
from escrow_auction.utils.validation import validate_amount, validate_identity

logger = get_logger("auction")

Identity = Hashable


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class BidRecord:
    """An accepted bid, kept for audit only."""
    identity: Identity
    amount: int
    timestamp: int


@dataclass(frozen=True)
class AuctionSnapshot:
    """Read-only view of the auction returned by ``get_state``."""
    phase: AuctionPhase
    start_time: int
    end_time: int
    high_bid: int
    high_bidder: Optional[Identity]
    winner_paid: bool
    commission_pool: int
    escrow_balance: int
    participant_count: int
    bid_count: int
    next_minimum_bid: int


@dataclass(frozen=True)
class Refund:
    """One participant's settlement in a distribution batch."""
    identity: Identity
    payout: int
    commission: int


@dataclass(frozen=True)
class DistributionReport:
    """
    Outcome of one ``distribute_remaining_funds`` call.

    Attributes:
        refunds: Participants paid in this call
        commission: Commission accrued by this call
        failed: Participants whose transfer failed; their balance is intact
        deferred: Winner skipped because the winning bid is not yet withdrawn
    """
    refunds: Tuple[Refund, ...]
    commission: int
    failed: Tuple[Identity, ...]
    deferred: Tuple[Identity, ...]

    @property
    def total_paid(self) -> int:
        return sum(r.payout for r in self.refunds)


# =============================================================================
# Auction Controller
# =============================================================================


class AuctionController:
    """
    Single-lot ascending auction with operator-controlled escrow.

    The operator starts, finalizes and settles the auction and is the
    only identity that can move pooled funds. Any other identity may bid.
    """

    def __init__(
        self,
        operator: Identity,
        gateway: TransferGateway,
        config: Optional[AuctionConfig] = None,
        clock=None,
        strict: bool = False,
    ):
        """
        Initialize the auction.

        Args:
            operator: Privileged identity; can never bid
            gateway: Outbound payment system
            config: Auction parameters (defaults if None)
            clock: Object with ``now() -> int``; SystemClock if None
            strict: Check ledger invariants after every mutating call
        """
        valid, err = validate_identity(operator, "operator")
        if not valid:
            raise InvalidInput(err)

        self.config = config or AuctionConfig()
        self.config.validate()

        self._operator = operator
        self.gateway = gateway
        self.clock = clock or SystemClock()
        self.strict = strict

        self.ledger = Ledger(
            starting_price=self.config.starting_price,
            commission_pct=self.config.commission_pct,
        )
        self.events = EventBus()

        self.phase = AuctionPhase.PENDING
        self.start_time = 0
        self.end_time = 0

        # Registration order drives the distribution batch
        self._registered: List[Identity] = []
        self._registered_set = set()

        self._bid_history: List[BidRecord] = []
        # Set while a distribution batch holds unpooled commission
        self._distributing = False

        self._lock = threading.RLock()

        logger.info(
            f"Auction created: operator={operator!r}, starting_price={self.config.starting_price}, "
            f"duration={self.config.duration}s, commission={self.config.commission_pct}%"
        )

    @property
    def operator(self) -> Identity:
        return self._operator

    @property
    def registered_participants(self) -> Tuple[Identity, ...]:
        with self._lock:
            return tuple(self._registered)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _sync_phase(self) -> int:
        """Read the clock, apply the lazy Active -> Ended step, return now."""
        now = self.clock.now()
        phase = effective_phase(self.phase, self.end_time, now)
        if phase != self.phase:
            logger.info(f"Auction ended at {now} (end_time={self.end_time}, high_bid={self.ledger.high_bid})")
            self.phase = phase
        return now

    def _require_operator(self, caller: Identity, action: str) -> None:
        if caller != self._operator:
            raise Unauthorized(f"Only the operator may {action}")

    def _require_phase(self, expected: AuctionPhase, action: str) -> None:
        if self.phase != expected:
            raise InvalidPhase(f"Cannot {action} in phase {self.phase.name} (requires {expected.name})")

    @staticmethod
    def _check_identity(identity: Identity, name: str = "identity") -> None:
        valid, err = validate_identity(identity, name)
        if not valid:
            raise InvalidInput(err)

    @staticmethod
    def _check_amount(amount: int, name: str) -> None:
        valid, err = validate_amount(amount, name)
        if not valid:
            raise InvalidInput(err)

    def _pay(self, recipient: Identity, amount: int) -> None:
        try:
            sent = self.gateway.send(recipient, amount)
        except Exception as e:
            logger.warning(f"Transfer of {amount} to {recipient!r} raised: {e}")
            raise TransferFailed(f"Transfer of {amount} to {recipient!r} failed: {e}") from e

        if not sent:
            logger.warning(f"Transfer of {amount} to {recipient!r} was rejected")
            raise TransferFailed(f"Transfer of {amount} to {recipient!r} was rejected")

    def _emit(self, event_type: EventType, actor: Optional[Identity], amount: int, reason: str, now: int) -> None:
        self.events.emit(AuctionEvent(
            event_type=event_type,
            actor=actor,
            amount=amount,
            reason=reason,
            timestamp=now,
        ))

    def _after_mutation(self) -> None:
        if self.strict:
            self.ledger.check_invariants()

    def _next_minimum_bid(self) -> int:
        high_bid = self.ledger.high_bid
        if self.ledger.high_bidder is None:
            return high_bid
        # Truncating division: the required raise rounds down
        return high_bid + high_bid * self.config.min_increment_pct // 100

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, caller: Identity) -> None:
        """Open bidding for ``duration`` seconds from now."""
        with self._lock:
            self._require_operator(caller, "start the auction")
            now = self._sync_phase()
            self._require_phase(AuctionPhase.PENDING, "start")

            self.start_time = now
            self.end_time = now + self.config.duration
            self.phase = AuctionPhase.ACTIVE

            logger.info(f"Auction started at {now}, ends at {self.end_time}")
            self._emit(EventType.AUCTION_STARTED, caller, 0, "auction started", now)

    def finalize(self, caller: Identity) -> Tuple[Optional[Identity], int]:
        """
        Close an ended auction.

        Returns:
            (winner, winning_amount) frozen at finalization
        """
        with self._lock:
            self._require_operator(caller, "finalize")
            now = self._sync_phase()
            if self.phase == AuctionPhase.FINALIZED:
                raise InvalidPhase("Auction already finalized")
            self._require_phase(AuctionPhase.ENDED, "finalize")

            self.phase = AuctionPhase.FINALIZED
            winner, amount = self._winner()

            logger.info(f"Auction finalized: winner={winner!r}, amount={amount}")
            self._emit(EventType.AUCTION_ENDED, winner, amount, "auction finalized", now)
            return winner, amount

    def force_finalize(self, caller: Identity) -> None:
        """
        Jump to Finalized from Active or Ended, ignoring end_time.

        Only available when ``allow_force_finalize`` is set in the config.
        """
        with self._lock:
            self._require_operator(caller, "force finalize")
            if not self.config.allow_force_finalize:
                raise Unauthorized("Force finalize is disabled for this auction")

            now = self._sync_phase()
            if self.phase in (AuctionPhase.PENDING, AuctionPhase.FINALIZED):
                raise InvalidPhase(f"Cannot force finalize in phase {self.phase.name}")

            previous = self.phase
            self.phase = AuctionPhase.FINALIZED
            winner, amount = self._winner()

            logger.warning(f"Auction force finalized from {previous.name} at {now} (end_time={self.end_time})")
            self._emit(EventType.AUCTION_FORCE_ENDED, winner, amount, f"forced from {previous.name.lower()}", now)

    # =========================================================================
    # Bidding
    # =========================================================================

    def place_bid(self, identity: Identity, declared_amount: int, deposited_value: int) -> BidRecord:
        """
        Submit a bid, depositing ``deposited_value`` into escrow.

        Raises:
            Unauthorized: the operator tried to bid
            InvalidPhase: bidding is not open
            BidTooLow: below ``get_next_minimum_bid()``
            InsufficientDeposit: deposit does not cover the bid
        """
        with self._lock:
            if identity == self._operator:
                raise Unauthorized("Operator cannot bid")

            self._check_identity(identity)
            self._check_amount(declared_amount, "declared_amount")
            self._check_amount(deposited_value, "deposited_value")

            now = self._sync_phase()
            self._require_phase(AuctionPhase.ACTIVE, "bid")

            minimum = self._next_minimum_bid()
            if declared_amount < minimum:
                raise BidTooLow(f"Bid {declared_amount} below minimum {minimum}")
            if self.ledger.high_bidder is not None and declared_amount <= self.ledger.high_bid:
                # Only reachable when the truncated increment rounds to zero
                raise BidTooLow(f"Bid {declared_amount} does not exceed high bid {self.ledger.high_bid}")
            if deposited_value < declared_amount:
                raise InsufficientDeposit(f"Deposit {deposited_value} does not cover bid {declared_amount}")

            with self.ledger.atomic(identity):
                self.ledger.record_bid(identity, declared_amount, deposited_value)
                self.ledger.set_high_bid(identity, declared_amount)

            if identity not in self._registered_set:
                self._registered_set.add(identity)
                self._registered.append(identity)

            extended = False
            if self.end_time - now <= self.config.extension_window:
                self.end_time += self.config.extension
                extended = True

            record = BidRecord(identity=identity, amount=declared_amount, timestamp=now)
            self._bid_history.append(record)
            self._after_mutation()

            logger.info(f"Bid accepted: {identity!r} bid {declared_amount} (deposit {deposited_value})")
            if extended:
                logger.info(f"End time extended to {self.end_time}")
                self._emit(EventType.END_TIME_EXTENDED, identity, self.config.extension,
                           f"late bid, auction now ends at {self.end_time}", now)
            self._emit(EventType.BID_ACCEPTED, identity, declared_amount, "bid accepted", now)
            return record

    # =========================================================================
    # Excess withdrawal
    # =========================================================================

    def withdraw_excess(self, identity: Identity) -> int:
        """Withdraw everything deposited beyond the standing bid."""
        with self._lock:
            self._check_identity(identity)
            now = self._sync_phase()
            self._require_phase(AuctionPhase.ACTIVE, "withdraw excess")

            excess = self.ledger.withdrawable_excess(identity)
            if excess == 0:
                raise NoExcessAvailable(f"{identity!r} has no excess to withdraw")

            return self._withdraw_excess(identity, excess, now)

    def withdraw_partial_excess(self, identity: Identity, amount: int) -> int:
        """Withdraw ``amount`` of the excess, 0 < amount <= excess."""
        with self._lock:
            self._check_identity(identity)
            if isinstance(amount, bool) or not isinstance(amount, int):
                raise InvalidInput(f"amount must be int, got {type(amount).__name__}")
            now = self._sync_phase()
            self._require_phase(AuctionPhase.ACTIVE, "withdraw excess")

            excess = self.ledger.withdrawable_excess(identity)
            if excess == 0:
                raise NoExcessAvailable(f"{identity!r} has no excess to withdraw")
            if amount <= 0 or amount > excess:
                raise LimitExceeded(f"Amount {amount} outside (0, {excess}]")

            return self._withdraw_excess(identity, amount, now)

    def _withdraw_excess(self, identity: Identity, amount: int, now: int) -> int:
        with self.ledger.atomic(identity):
            self.ledger.apply_excess_withdrawal(identity, amount)
            self._pay(identity, amount)
        self._after_mutation()

        logger.info(f"Excess withdrawn: {amount} to {identity!r}")
        self._emit(EventType.EXCESS_WITHDRAWN, identity, amount, "excess withdrawn", now)
        return amount

    # =========================================================================
    # Settlement
    # =========================================================================

    def distribute_remaining_funds(self, caller: Identity) -> DistributionReport:
        """
        Pay every participant their remaining balance minus commission.

        Each participant is settled independently: a failed transfer
        restores that participant's balance and the batch moves on.
        Commission from this call is added to the pool once, at the end,
        before any refund event reaches listeners.
        """
        with self._lock:
            self._require_operator(caller, "distribute funds")
            now = self._sync_phase()
            self._require_phase(AuctionPhase.FINALIZED, "distribute funds")

            refunds: List[Refund] = []
            failed: List[Identity] = []
            deferred: List[Identity] = []
            batch_commission = 0

            self._distributing = True
            try:
                for identity in self._registered:
                    if self.ledger.total_deposited(identity) == 0:
                        continue
                    if identity == self.ledger.high_bidder and not self.ledger.winner_paid:
                        deferred.append(identity)
                        continue

                    try:
                        with self.ledger.atomic(identity):
                            payout, commission = self.ledger.settle_participant(identity)
                            if payout > 0:
                                self._pay(identity, payout)
                    except TransferFailed:
                        logger.warning(f"Refund to {identity!r} failed, left pending for a later batch")
                        failed.append(identity)
                        continue

                    batch_commission += commission
                    refunds.append(Refund(identity=identity, payout=payout, commission=commission))
            finally:
                # Settled participants are committed, so their commission must be too
                if batch_commission:
                    self.ledger.accrue_commission(batch_commission)
                self._distributing = False
            self._after_mutation()

            # Listeners may call back in, so they only see the settled batch
            for refund in refunds:
                self._emit(EventType.REFUND_ISSUED, refund.identity, refund.payout,
                           f"refund after {refund.commission} commission", now)

            report = DistributionReport(
                refunds=tuple(refunds),
                commission=batch_commission,
                failed=tuple(failed),
                deferred=tuple(deferred),
            )
            logger.info(
                f"Distributed {report.total_paid} to {len(refunds)} participants, "
                f"commission {batch_commission}, {len(failed)} failed, {len(deferred)} deferred"
            )
            self._emit(EventType.FUNDS_DISTRIBUTED, caller, report.total_paid,
                       f"{len(refunds)} refunds, {len(failed)} failed", now)
            return report

    # =========================================================================
    # Operator withdrawals
    # =========================================================================

    def withdraw_winning_bid(self, caller: Identity) -> int:
        """Pay the winning amount to the operator. One-shot."""
        with self._lock:
            self._require_operator(caller, "withdraw the winning bid")
            now = self._sync_phase()
            self._require_phase(AuctionPhase.FINALIZED, "withdraw the winning bid")

            winner = self.ledger.high_bidder
            touched = (winner,) if winner is not None else ()
            with self.ledger.atomic(*touched):
                amount = self.ledger.withdraw_winning_bid()
                self._pay(caller, amount)
            self._after_mutation()

            logger.info(f"Winning bid withdrawn: {amount} from {winner!r}")
            self._emit(EventType.WINNING_BID_WITHDRAWN, caller, amount, f"winning bid of {winner!r}", now)
            return amount

    def withdraw_commission_pool(self, caller: Identity) -> int:
        """Pay the accrued commission to the operator."""
        with self._lock:
            self._require_operator(caller, "withdraw commission")
            now = self._sync_phase()

            with self.ledger.atomic():
                amount = self.ledger.withdraw_commission_pool()
                self._pay(caller, amount)
            self._after_mutation()

            logger.info(f"Commission withdrawn: {amount}")
            self._emit(EventType.COMMISSION_WITHDRAWN, caller, amount, "commission withdrawn", now)
            return amount

    def withdraw_all_funds(self, caller: Identity) -> int:
        """
        Emergency sweep of escrow funds no ledger entry accounts for.

        Participant balances and the commission pool are never touched.
        """
        with self._lock:
            self._require_operator(caller, "sweep funds")
            now = self._sync_phase()
            if self._distributing:
                raise InvalidPhase("Cannot sweep funds while a distribution batch is running")

            with self.ledger.atomic():
                amount = self.ledger.sweep_residual()
                self._pay(caller, amount)
            self._after_mutation()

            logger.warning(f"Emergency withdrawal of {amount} in phase {self.phase.name}")
            self._emit(EventType.EMERGENCY_WITHDRAWAL, caller, amount, "residual swept", now)
            return amount

    def receive_funds(self, sender: Identity, amount: int) -> None:
        """
        Accept funds sent to the escrow outside of a bid.

        They create no participant claim and can only leave through
        ``withdraw_all_funds``.
        """
        with self._lock:
            self._check_identity(sender, "sender")
            self._check_amount(amount, "amount")
            self._sync_phase()

            self.ledger.receive_funds(amount)
            self._after_mutation()
            logger.info(f"Received {amount} from {sender!r} outside of bidding")

    # =========================================================================
    # Queries
    # =========================================================================

    def _winner(self) -> Tuple[Optional[Identity], int]:
        if self.ledger.high_bidder is None:
            return None, 0
        return self.ledger.high_bidder, self.ledger.high_bid

    def get_winner(self) -> Tuple[Optional[Identity], int]:
        """(winner, amount) once bidding has closed; (None, 0) if nobody bid."""
        with self._lock:
            self._sync_phase()
            if self.phase not in (AuctionPhase.ENDED, AuctionPhase.FINALIZED):
                raise InvalidPhase(f"No winner while {self.phase.name}")
            return self._winner()

    def get_next_minimum_bid(self) -> int:
        with self._lock:
            self._sync_phase()
            return self._next_minimum_bid()

    def get_bid_history(self) -> Tuple[BidRecord, ...]:
        with self._lock:
            self._sync_phase()
            return tuple(self._bid_history)

    def get_state(self) -> AuctionSnapshot:
        with self._lock:
            self._sync_phase()
            return AuctionSnapshot(
                phase=self.phase,
                start_time=self.start_time,
                end_time=self.end_time,
                high_bid=self.ledger.high_bid,
                high_bidder=self.ledger.high_bidder,
                winner_paid=self.ledger.winner_paid,
                commission_pool=self.ledger.commission_pool,
                escrow_balance=self.ledger.escrow_balance,
                participant_count=len(self._registered),
                bid_count=len(self._bid_history),
                next_minimum_bid=self._next_minimum_bid(),
            )

    def __repr__(self) -> str:
        return (
            f"AuctionController(phase={self.phase.name}, high_bid={self.ledger.high_bid}, "
            f"participants={len(self._registered)})"
        )
