"""
Payment gateways used to move withdrawn balances out of the ledger.

The ledger only depends on the PaymentGateway protocol; a transfer either
returns normally or raises, and the ledger restores the balance on failure.
"""

import logging
import threading
from decimal import Decimal
from typing import Dict, List, Protocol, Tuple

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Raised by a gateway when a transfer cannot be completed."""
    pass


class PaymentGateway(Protocol):
    def transfer(self, account: str, amount: Decimal) -> None:
        """Send ``amount`` to ``account`` or raise."""
        ...


class InMemoryPaymentGateway:
    """Gateway that records transfers in memory (demo and tests)."""

    def __init__(self):
        self._guard = threading.Lock()
        self.transfers: List[Tuple[str, Decimal]] = []
        self.paid_out: Dict[str, Decimal] = {}

    def transfer(self, account: str, amount: Decimal) -> None:
        if amount <= 0:
            raise PaymentError(f"Transfer amount must be positive: {amount}")
        with self._guard:
            self.transfers.append((account, amount))
            self.paid_out[account] = self.paid_out.get(account, Decimal("0")) + amount
        logger.debug(f"Transferred {amount} to {account}")

    def total_paid(self, account: str) -> Decimal:
        return self.paid_out.get(account, Decimal("0"))
