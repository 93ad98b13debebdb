"""
Facts emitted by the flight surety ledger.

Every fact is an immutable Pydantic model with an ``event_type`` literal so
subscribers and the Valkey publisher can route it without isinstance checks.
Facts are delivered in the order the ledger produced them.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal
from pydantic import BaseModel, Field, ConfigDict

from .enums import AirlineStatus, FlightStatusCode
from .flight import FlightKey


class LedgerEvent(BaseModel):
    """Base class for ledger facts."""
    model_config = ConfigDict(frozen=True)

    event_type: str
    occurred_at: datetime = Field(default_factory=datetime.now)


class StatusRequested(LedgerEvent):
    """Broadcast asking oracles holding ``index`` to report a flight status."""
    event_type: Literal["status_requested"] = "status_requested"
    request_id: int
    airline: str
    code: str
    timestamp: int
    index: int


class OracleReported(LedgerEvent):
    """An oracle response was accepted (including responses after quorum)."""
    event_type: Literal["oracle_reported"] = "oracle_reported"
    oracle: str
    index: int
    airline: str
    code: str
    timestamp: int
    status_code: FlightStatusCode


class StatusResolved(LedgerEvent):
    """A flight status reached oracle quorum."""
    event_type: Literal["status_resolved"] = "status_resolved"
    airline: str
    code: str
    timestamp: int
    status_code: FlightStatusCode


class PayoutCredited(LedgerEvent):
    event_type: Literal["payout_credited"] = "payout_credited"
    passenger: str
    flight_key: FlightKey
    amount: Decimal


class AirlineVoted(LedgerEvent):
    event_type: Literal["airline_voted"] = "airline_voted"
    candidate: str
    voter: str
    votes: int
    threshold: int


class AirlineRegistered(LedgerEvent):
    event_type: Literal["airline_registered"] = "airline_registered"
    airline: str
    registered_by: str
    votes: int = 0


class AirlineFunded(LedgerEvent):
    event_type: Literal["airline_funded"] = "airline_funded"
    airline: str
    amount: Decimal
    status: AirlineStatus = AirlineStatus.FUNDED


class FlightRegistered(LedgerEvent):
    event_type: Literal["flight_registered"] = "flight_registered"
    flight_key: FlightKey
    registered_by: str


class InsurancePurchased(LedgerEvent):
    event_type: Literal["insurance_purchased"] = "insurance_purchased"
    passenger: str
    flight_key: FlightKey
    premium: Decimal


class OracleRegistered(LedgerEvent):
    event_type: Literal["oracle_registered"] = "oracle_registered"
    oracle: str
    indexes: List[int]


class WithdrawalPaid(LedgerEvent):
    event_type: Literal["withdrawal_paid"] = "withdrawal_paid"
    passenger: str
    amount: Decimal


class OperationalStatusChanged(LedgerEvent):
    event_type: Literal["operational_status_changed"] = "operational_status_changed"
    operational: bool
    changed_by: str
