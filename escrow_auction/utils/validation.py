"""
Input Validation - Sanitization of caller-supplied values.

Every public auction operation validates its inputs before touching
auction state, to reject:
- Non-integer or negative amounts
- Amounts beyond the ledger's arithmetic range
- Empty or oversized identities
"""

from typing import Any, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

MAX_IDENTITY_LENGTH = 256

# Amount bounds (ledger arithmetic is checked against MAX_AMOUNT)
MIN_AMOUNT = 0
MAX_AMOUNT = 2**64 - 1

# Timestamps are seconds since the epoch
MIN_TIMESTAMP = 0
MAX_TIMESTAMP = 2**63 - 1


# =============================================================================
# Validation Functions
# =============================================================================


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a currency amount."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_AMOUNT)


def validate_timestamp(value: Any, name: str = "timestamp") -> Tuple[bool, str]:
    """Validate a clock reading."""
    return validate_integer(value, name, MIN_TIMESTAMP, MAX_TIMESTAMP)


def validate_bytes(
    data: Any,
    name: str,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_string(
    value: Any,
    name: str,
    max_length: int = MAX_IDENTITY_LENGTH,
) -> Tuple[bool, str]:
    """
    Validate string input.

    Args:
        value: Value to validate
        name: Field name for errors
        max_length: Maximum string length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    if len(value) > max_length:
        return False, f"{name} exceeds max length {max_length}"

    return True, ""


def validate_identity(identity: Any, name: str = "identity") -> Tuple[bool, str]:
    """
    Validate a participant or operator identity.

    Identities are opaque to the auction: any non-empty str or bytes
    value up to MAX_IDENTITY_LENGTH is accepted.
    """
    if isinstance(identity, (bytes, bytearray)):
        valid, err = validate_bytes(identity, name, max_length=MAX_IDENTITY_LENGTH)
    else:
        valid, err = validate_string(identity, name)
    if not valid:
        return False, err

    if len(identity) == 0:
        return False, f"{name} must not be empty"

    return True, ""


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_integer",
    "validate_amount",
    "validate_timestamp",
    "validate_bytes",
    "validate_string",
    "validate_identity",
    "MIN_AMOUNT",
    "MAX_AMOUNT",
    "MAX_IDENTITY_LENGTH",
]
