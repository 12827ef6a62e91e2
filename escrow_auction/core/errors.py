"""
Error taxonomy for the escrow auction.

Every rejected call surfaces exactly one of these exceptions and leaves
no visible state change behind. Each class carries a stable ``reason``
code usable by callers that do not want to match on types.
"""


class AuctionError(Exception):
    """Base class for every rejected auction operation."""
    reason = "auction_error"


class Unauthorized(AuctionError):
    """Caller is not allowed to perform the operation."""
    reason = "unauthorized"


class InvalidPhase(AuctionError):
    """Operation is not legal in the current lifecycle phase."""
    reason = "invalid_phase"


class BidTooLow(AuctionError):
    """Declared bid is below the next minimum bid."""
    reason = "bid_too_low"


class InsufficientDeposit(AuctionError):
    """Deposited value does not cover the declared bid."""
    reason = "insufficient_deposit"


class NoExcessAvailable(AuctionError):
    """Participant has no withdrawable excess."""
    reason = "no_excess_available"


class LimitExceeded(AuctionError):
    """Partial withdrawal amount is outside (0, excess]."""
    reason = "limit_exceeded"


class AlreadySettled(AuctionError):
    """One-shot withdrawal was already performed."""
    reason = "already_settled"


class TransferFailed(AuctionError):
    """External payment did not succeed."""
    reason = "transfer_failed"


class NothingToWithdraw(AuctionError):
    """Withdrawal attempted against a zero balance."""
    reason = "nothing_to_withdraw"


class InvalidInput(AuctionError, ValueError):
    """Malformed amount or identity supplied by the caller."""
    reason = "invalid_input"


class LedgerInvariantError(AuctionError):
    """A ledger mutation would break an accounting invariant."""
    reason = "ledger_invariant"


__all__ = [
    "AuctionError",
    "Unauthorized",
    "InvalidPhase",
    "BidTooLow",
    "InsufficientDeposit",
    "NoExcessAvailable",
    "LimitExceeded",
    "AlreadySettled",
    "TransferFailed",
    "NothingToWithdraw",
    "InvalidInput",
    "LedgerInvariantError",
]
