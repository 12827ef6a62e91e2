"""
Transfer Gateway - outbound payments from the escrow.

The auction never moves money itself. Every payout goes through a
gateway whose ``send`` reports whether the payment happened. A False
return and a raised exception are treated the same: the payment did
not happen and the calling operation is rolled back.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Hashable, List, Set

from escrow_auction.utils.logger import get_logger

logger = get_logger("transfer")


@dataclass(frozen=True)
class TransferRecord:
    """A completed outbound payment."""
    recipient: Hashable
    amount: int


class TransferGateway(ABC):
    """Interface to the external payment system."""

    @abstractmethod
    def send(self, recipient: Hashable, amount: int) -> bool:
        """
        Pay ``amount`` to ``recipient``.

        Returns:
            True if the funds left the escrow, False otherwise
        """


class InMemoryGateway(TransferGateway):
    """
    Gateway that records payments in memory.

    Supports failure injection per recipient so tests and demos can
    exercise rollback paths.
    """

    def __init__(self):
        self.balances: Dict[Hashable, int] = defaultdict(int)
        self.transfers: List[TransferRecord] = []
        self.failing: Set[Hashable] = set()

    def fail_for(self, recipient: Hashable) -> None:
        """Make every payment to ``recipient`` fail."""
        self.failing.add(recipient)

    def recover(self, recipient: Hashable) -> None:
        self.failing.discard(recipient)

    def send(self, recipient: Hashable, amount: int) -> bool:
        if recipient in self.failing:
            logger.debug(f"Rejecting transfer of {amount} to {recipient!r}")
            return False

        self.balances[recipient] += amount
        self.transfers.append(TransferRecord(recipient=recipient, amount=amount))
        return True

    def received(self, recipient: Hashable) -> int:
        """Total paid to ``recipient`` so far."""
        return self.balances.get(recipient, 0)

    @property
    def total_sent(self) -> int:
        return sum(t.amount for t in self.transfers)
