"""
Account identifier helpers.

Accounts are opaque fixed-width addresses: ``0x`` followed by 40 hex digits.
They are normalised to lower case so the same address always maps to the
same table entry.
"""

import re
from typing import Any

from ..errors import InvalidAccount

ACCOUNT_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_account(value: Any) -> str:
    """
    Validate and normalise an account identifier.

    Args:
        value: Candidate account identifier

    Returns:
        str: Lower-cased account address

    Raises:
        InvalidAccount: If the value is not a 0x-prefixed 40 digit hex string
    """
    if not isinstance(value, str) or not ACCOUNT_PATTERN.match(value):
        raise InvalidAccount(f"Invalid account identifier: {value!r}", account=value)
    return value.lower()


def make_account(number: int) -> str:
    """Build a deterministic account address from an integer (for seeding actors)."""
    if number < 0:
        raise InvalidAccount(f"Account number must be non-negative: {number}")
    return f"0x{number:040x}"
