"""
Amount helpers.

Ledger amounts are Decimals in ether-equivalent units. Floats are converted
through their string form so 0.1 stays 0.1.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from ..errors import InvalidAmount


def to_amount(value: Any) -> Decimal:
    """
    Convert a value to a non-negative Decimal amount.

    Raises:
        InvalidAmount: If the value is not a finite, non-negative number
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}", amount=value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidAmount(f"Invalid amount: {value!r}", amount=value) from e
    if not amount.is_finite() or amount < 0:
        raise InvalidAmount(f"Amount must be a finite non-negative number: {value!r}", amount=value)
    return amount
