"""
Input Validation - sanitization of amounts, durations and accounts.

All helpers return (is_valid, error_message) so callers decide which
exception to raise.
"""

from typing import Any, Tuple

# =============================================================================
# Constants
# =============================================================================

MAX_ACCOUNT_LENGTH = 128

# uint256 bounds
MIN_AMOUNT = 0
MAX_AMOUNT = 2**256 - 1

# Durations and timestamps are unix seconds
MAX_DURATION = 2**64 - 1


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
    # bool is an int subclass; True is not an amount
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a uint256 token amount."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_AMOUNT)


def validate_duration(duration: Any) -> Tuple[bool, str]:
    """Validate a duration in seconds."""
    return validate_integer(duration, "duration", 0, MAX_DURATION)


def validate_account(account: Any, name: str = "account") -> Tuple[bool, str]:
    """
    Validate an account identifier.

    Accounts are opaque non-empty strings (hex addresses, names, ...).
    """
    if not isinstance(account, str):
        return False, f"{name} must be str, got {type(account).__name__}"

    if not account:
        return False, f"{name} must not be empty"

    if len(account) > MAX_ACCOUNT_LENGTH:
        return False, f"{name} exceeds max length {MAX_ACCOUNT_LENGTH}, got {len(account)}"

    return True, ""
