"""
Auction events - observability surface of the controller.

Each state-affecting action emits one event after its effects and
transfers have completed. Events are appended to a log and pushed to
subscribers; a failing subscriber is logged and never affects the
operation that emitted the event.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Hashable, List, Optional, Tuple

from escrow_auction.utils.logger import get_logger

logger = get_logger("events")


class EventType(IntEnum):
    """Kinds of auction events."""
    AUCTION_STARTED = 0
    BID_ACCEPTED = 1
    END_TIME_EXTENDED = 2
    EXCESS_WITHDRAWN = 3
    AUCTION_ENDED = 4
    AUCTION_FORCE_ENDED = 5
    REFUND_ISSUED = 6
    FUNDS_DISTRIBUTED = 7
    COMMISSION_WITHDRAWN = 8
    WINNING_BID_WITHDRAWN = 9
    EMERGENCY_WITHDRAWAL = 10


@dataclass(frozen=True)
class AuctionEvent:
    """
    A single emitted event.

    Attributes:
        event_type: What happened
        actor: Identity that acted or was paid
        amount: Money amount involved (0 if none)
        reason: Short human-readable description
        timestamp: Clock reading when emitted
    """
    event_type: EventType
    actor: Optional[Hashable]
    amount: int
    reason: str
    timestamp: int


EventListener = Callable[[AuctionEvent], None]


class EventBus:
    """Append-only event log with synchronous subscribers."""

    def __init__(self):
        self._events: List[AuctionEvent] = []
        self._listeners: List[EventListener] = []

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: AuctionEvent) -> None:
        self._events.append(event)
        logger.debug(f"{event.event_type.name}: actor={event.actor!r} amount={event.amount} ({event.reason})")

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Event listener failed on {event.event_type.name}")

    @property
    def events(self) -> Tuple[AuctionEvent, ...]:
        return tuple(self._events)

    def of_type(self, event_type: EventType) -> List[AuctionEvent]:
        return [e for e in self._events if e.event_type == event_type]

    def __len__(self) -> int:
        return len(self._events)
