"""
Ledger state container.

All mutable ledger tables live in one LedgerState instance owned by the
FlightSuretyLedger facade. Components receive the container and mutate it
only while holding the entity locks that cover the tables they touch.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Set, Tuple

from .models.airline import AirlineModel
from .models.enums import Role
from .models.flight import FlightKey, FlightModel
from .models.insurance import InsurancePolicyModel
from .models.oracle import OracleModel, OracleRequestModel, OracleResponseBucketModel

BucketKey = Tuple[int, FlightKey]


@dataclass
class LedgerState:
    """Owned tables of the ledger."""
    owner: str
    operational: bool = True
    treasury: Decimal = Decimal("0")

    # Identity registry: account -> roles
    accounts: Dict[str, Set[Role]] = field(default_factory=dict)

    airlines: Dict[str, AirlineModel] = field(default_factory=dict)
    flights: Dict[FlightKey, FlightModel] = field(default_factory=dict)

    # flight -> passenger -> policy, in purchase order
    policies: Dict[FlightKey, Dict[str, InsurancePolicyModel]] = field(default_factory=dict)
    balances: Dict[str, Decimal] = field(default_factory=dict)

    oracles: Dict[str, OracleModel] = field(default_factory=dict)
    oracle_nonce: int = 0
    request_counter: int = 0
    requests: Dict[BucketKey, OracleRequestModel] = field(default_factory=dict)
    buckets: Dict[BucketKey, OracleResponseBucketModel] = field(default_factory=dict)
