"""
Flight surety Pydantic models package.

This package contains the entity models held in the ledger state, the facts
emitted by ledger operations, and the account helpers shared by all
components.
"""

# Enums
from .enums import (
    AirlineStatus,
    FlightStatusCode,
    Role,
)

from .account import normalize_account, make_account
from .amount import to_amount

# Core entities
from .airline import AirlineModel

from .flight import (
    FlightKey,
    FlightModel,
    make_flight_key,
)

from .insurance import (
    InsurancePolicyModel,
    PassengerBalanceModel,
)

from .oracle import (
    OracleModel,
    OracleRequestModel,
    OracleResponseBucketModel,
)

# Facts
from .events import (
    LedgerEvent,
    StatusRequested,
    OracleReported,
    StatusResolved,
    PayoutCredited,
    AirlineVoted,
    AirlineRegistered,
    AirlineFunded,
    FlightRegistered,
    InsurancePurchased,
    OracleRegistered,
    WithdrawalPaid,
    OperationalStatusChanged,
)

__all__ = [
    # Enums
    "AirlineStatus",
    "FlightStatusCode",
    "Role",

    # Accounts
    "normalize_account",
    "make_account",
    "to_amount",

    # Entities
    "AirlineModel",
    "FlightKey",
    "FlightModel",
    "make_flight_key",
    "InsurancePolicyModel",
    "PassengerBalanceModel",
    "OracleModel",
    "OracleRequestModel",
    "OracleResponseBucketModel",

    # Facts
    "LedgerEvent",
    "StatusRequested",
    "OracleReported",
    "StatusResolved",
    "PayoutCredited",
    "AirlineVoted",
    "AirlineRegistered",
    "AirlineFunded",
    "FlightRegistered",
    "InsurancePurchased",
    "OracleRegistered",
    "WithdrawalPaid",
    "OperationalStatusChanged",
]
