"""
Concurrency tests - operations are serialized per auction.

Tests verify:
1. Racing bids are strictly ordered; exactly one wins each price level
2. Finalize racing bids never observes a half-applied bid
3. Concurrent withdrawals never pay out more than the excess
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from escrow_auction.core.auction import AuctionController, AuctionPhase
from escrow_auction.core.clock import ManualClock
from escrow_auction.core.errors import AuctionError, BidTooLow
from escrow_auction.core.transfer import InMemoryGateway

OPERATOR = "operator"


@pytest.fixture
def clock():
    return ManualClock(start=0)


@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def auction(gateway, clock):
    auction = AuctionController(OPERATOR, gateway, clock=clock, strict=True)
    auction.start(OPERATOR)
    return auction


class TestConcurrentBids:
    """Tests for racing bidders."""

    def test_same_price_only_one_accepted(self, auction):
        barrier = threading.Barrier(8)
        results = []

        def bid(name):
            barrier.wait()
            try:
                auction.place_bid(name, 1_000_000, 1_000_000)
                results.append(("ok", name))
            except BidTooLow:
                results.append(("low", name))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(bid, [f"bidder-{i}" for i in range(8)]))

        accepted = [name for status, name in results if status == "ok"]
        assert len(accepted) == 1
        assert auction.ledger.high_bidder == accepted[0]
        assert auction.ledger.escrow_balance == 1_000_000

    def test_history_strictly_increasing(self, auction):
        def bidder(name):
            for _ in range(25):
                minimum = auction.get_next_minimum_bid()
                try:
                    auction.place_bid(name, minimum, minimum)
                except BidTooLow:
                    pass

        threads = [threading.Thread(target=bidder, args=(f"bidder-{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        amounts = [record.amount for record in auction.get_bid_history()]
        assert amounts == sorted(set(amounts))
        assert auction.ledger.escrow_balance == sum(amounts)
        auction.ledger.check_invariants()

    def test_finalize_races_bids(self, auction, clock):
        stop = threading.Event()

        def keep_bidding():
            names = ["alice", "bob"]
            turn = 0
            while not stop.is_set():
                try:
                    auction.place_bid(names[turn % 2], auction.get_next_minimum_bid(), 10**9)
                    turn += 1
                except AuctionError:
                    pass

        worker = threading.Thread(target=keep_bidding)
        worker.start()
        clock.set(auction.end_time)
        auction.finalize(OPERATOR)
        stop.set()
        worker.join()

        # Every accepted bid saw the auction still active
        bids = auction.get_bid_history()
        assert all(record.timestamp < auction.end_time for record in bids)
        assert auction.phase == AuctionPhase.FINALIZED
        if bids:
            assert auction.get_winner() == (bids[-1].identity, bids[-1].amount)
        auction.ledger.check_invariants()


class TestConcurrentWithdrawals:
    """Tests for racing excess withdrawals."""

    def test_never_overpays(self, auction, gateway):
        auction.place_bid("alice", 1_000_000, 1_100_000)

        def withdraw(_):
            try:
                return auction.withdraw_partial_excess("alice", 30_000)
            except AuctionError:
                return 0

        with ThreadPoolExecutor(max_workers=8) as pool:
            paid = sum(pool.map(withdraw, range(8)))

        assert paid == 90_000
        assert gateway.received("alice") == 90_000
        assert auction.ledger.withdrawable_excess("alice") == 10_000


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
