"""
End-to-end auction scenarios.

Tests verify:
1. The reference two-bidder lifecycle, down to every payout
2. Conservation of funds across a randomized bidding session
3. Monotonic high bid and per-participant deposit invariant
"""

import random

import pytest

from escrow_auction.core.auction import AuctionController, AuctionPhase
from escrow_auction.core.clock import ManualClock
from escrow_auction.core.errors import AlreadySettled, AuctionError, Unauthorized
from escrow_auction.core.transfer import InMemoryGateway

OPERATOR = "operator"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock():
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def auction(gateway, clock):
    return AuctionController(OPERATOR, gateway, clock=clock, strict=True)


# =============================================================================
# Scenario Tests
# =============================================================================


class TestReferenceScenario:
    """Two bidders, winner with excess, full settlement."""

    def test_full_lifecycle(self, auction, gateway, clock):
        auction.start(OPERATOR)

        auction.place_bid("A", 1_050_000, 1_050_000)
        auction.place_bid("B", 1_102_500, 1_200_000)

        clock.set(auction.end_time + 1)
        assert auction.get_state().phase == AuctionPhase.ENDED

        auction.finalize(OPERATOR)
        assert auction.phase == AuctionPhase.FINALIZED

        assert auction.withdraw_winning_bid(OPERATOR) == 1_102_500
        with pytest.raises(AlreadySettled):
            auction.withdraw_winning_bid(OPERATOR)

        report = auction.distribute_remaining_funds(OPERATOR)
        assert gateway.received("A") == 1_029_000
        assert gateway.received("B") == 95_550
        assert report.commission == 22_950
        assert auction.ledger.commission_pool == 22_950

        assert auction.withdraw_commission_pool(OPERATOR) == 22_950
        assert gateway.received(OPERATOR) == 1_102_500 + 22_950

        # Everything deposited has left the escrow
        assert gateway.total_sent == 2_250_000
        assert auction.ledger.escrow_balance == 0

    def test_operator_never_bids(self, auction, clock):
        for phase_step in range(3):
            with pytest.raises(Unauthorized):
                auction.place_bid(OPERATOR, 5_000_000, 5_000_000)
            if phase_step == 0:
                auction.start(OPERATOR)
            elif phase_step == 1:
                clock.set(auction.end_time)


class TestRandomizedSession:
    """Randomized bidding and withdrawals keep the books balanced."""

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_conservation(self, auction, gateway, clock, seed):
        rng = random.Random(seed)
        bidders = [f"bidder-{i}" for i in range(6)]
        auction.start(OPERATOR)

        deposited = 0
        previous_high = None
        for _ in range(60):
            clock.advance(rng.randint(0, 3_000))
            bidder = rng.choice(bidders)
            action = rng.random()
            try:
                if action < 0.7:
                    minimum = auction.get_next_minimum_bid()
                    amount = minimum + rng.randint(-1_000, 50_000)
                    deposit = amount + rng.randint(-10, 100_000)
                    high_before = auction.ledger.high_bid
                    had_leader = auction.ledger.high_bidder is not None
                    auction.place_bid(bidder, amount, deposit)
                    deposited += deposit
                    assert amount >= minimum
                    if had_leader:
                        assert amount > high_before
                    if previous_high is not None:
                        assert amount > previous_high
                    previous_high = amount
                elif action < 0.85:
                    auction.withdraw_excess(bidder)
                else:
                    auction.withdraw_partial_excess(bidder, rng.randint(0, 60_000))
            except AuctionError:
                pass

            for record in auction.ledger.participants.values():
                assert record.total_deposited >= record.last_bid_amount

        clock.set(max(clock.now(), auction.end_time))
        auction.finalize(OPERATOR)
        if auction.ledger.high_bidder is not None:
            auction.withdraw_winning_bid(OPERATOR)
        auction.distribute_remaining_funds(OPERATOR)
        if auction.ledger.commission_pool:
            auction.withdraw_commission_pool(OPERATOR)

        assert gateway.total_sent == deposited
        assert auction.ledger.escrow_balance == 0
        assert auction.ledger.total_held_for_participants == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
