"""
Oracle models for the flight surety ledger.

This module contains registered oracles, the status requests opened for a
flight, and the response buckets used to detect quorum.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import FlightStatusCode
from .flight import FlightKey


class OracleModel(BaseModel):
    """Registered oracle with its assigned indexes."""
    model_config = ConfigDict(from_attributes=True)

    account: str = Field(..., description="Oracle account address")
    indexes: List[int] = Field(..., min_length=1, description="Assigned request indexes")
    registered_at: datetime = Field(default_factory=datetime.now, description="Registration time")


class OracleRequestModel(BaseModel):
    """
    Open status request for a flight.

    Only oracles holding ``index`` may answer the request. Requests stay open
    after quorum so late responses are still recorded for audit.
    """
    model_config = ConfigDict(from_attributes=True)

    request_id: int = Field(..., ge=1, description="Monotonic request identifier")
    index: int = Field(..., ge=0, description="Oracle selection index")
    flight_key: FlightKey
    requester: str = Field(..., description="Account that asked for the status")
    requested_at: datetime = Field(default_factory=datetime.now, description="Request time")


class OracleResponseBucketModel(BaseModel):
    """
    Responses collected for one (index, flight) request.

    ``responses`` maps each reported status to the oracles that reported it,
    in arrival order. Once a status reaches quorum the bucket is sealed and
    later responses are kept for audit only.
    """
    model_config = ConfigDict(from_attributes=True)

    index: int = Field(..., ge=0)
    flight_key: FlightKey
    responses: Dict[FlightStatusCode, List[str]] = Field(default_factory=dict)
    responders: List[str] = Field(default_factory=list, description="Every oracle that answered, in order")
    sealed_status: Optional[FlightStatusCode] = Field(None, description="Status that reached quorum")
    sealed_at: Optional[datetime] = None

    @property
    def is_sealed(self) -> bool:
        return self.sealed_status is not None

    def reporters(self, status_code: FlightStatusCode) -> List[str]:
        return self.responses.get(status_code, [])
