"""
Flight-related Pydantic models for the flight surety ledger.

A flight is identified by the composite key (airline, flight code, departure
timestamp). The key is an immutable, hashable model so it can index the
flight, policy, request and response tables directly.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, ValidationError

from ..errors import InvalidFlight
from .account import normalize_account
from .enums import FlightStatusCode


class FlightKey(BaseModel):
    """Composite flight identifier."""
    model_config = ConfigDict(frozen=True)

    airline: str = Field(..., description="Operating airline account")
    code: str = Field(..., min_length=1, max_length=16, description="Flight number, e.g. 'KD1234'")
    timestamp: int = Field(..., ge=0, description="Scheduled departure (unix seconds)")

    def __str__(self) -> str:
        return f"{self.airline}:{self.code}:{self.timestamp}"


def make_flight_key(airline: str, code: str, timestamp: int) -> FlightKey:
    """
    Build a FlightKey from caller input.

    Raises:
        InvalidAccount: If the airline is not a valid account
        InvalidFlight: If the code or timestamp is out of range
    """
    airline = normalize_account(airline)
    try:
        return FlightKey(airline=airline, code=code, timestamp=timestamp)
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise InvalidFlight(
            f"Invalid flight {code!r} at {timestamp!r}: {problems}", code=code, timestamp=timestamp
        ) from e


class FlightModel(BaseModel):
    """
    Flight registered against a funded airline.

    The status code starts as UNKNOWN and is only changed by oracle
    consensus.
    """
    model_config = ConfigDict(from_attributes=True)

    key: FlightKey
    registered_by: str = Field(..., description="Account that registered the flight")
    status_code: FlightStatusCode = Field(default=FlightStatusCode.UNKNOWN, description="Confirmed flight status")
    registered_at: datetime = Field(default_factory=datetime.now, description="Registration time")
    resolved_at: Optional[datetime] = Field(None, description="Time the status reached oracle quorum")

    @property
    def airline(self) -> str:
        return self.key.airline

    @property
    def code(self) -> str:
        return self.key.code

    @property
    def timestamp(self) -> int:
        return self.key.timestamp
