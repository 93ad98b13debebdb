"""
Airline-related Pydantic models for the flight surety ledger.

This module contains the airline record tracked by the airline consensus
engine, including the votes collected while a candidate is unregistered.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import AirlineStatus


class AirlineModel(BaseModel):
    """Airline record with lifecycle status and pending votes."""
    model_config = ConfigDict(from_attributes=True)

    account: str = Field(..., description="Airline account address")
    status: AirlineStatus = Field(default=AirlineStatus.UNREGISTERED, description="Lifecycle status")
    votes: List[str] = Field(default_factory=list, description="Funded airlines that voted for this candidate")
    funded_amount: Decimal = Field(default=Decimal("0"), ge=0, description="Stake paid when funding")
    registered_at: Optional[datetime] = Field(None, description="Time the airline became registered")
    funded_at: Optional[datetime] = Field(None, description="Time the airline paid its stake")

    @property
    def is_registered(self) -> bool:
        """Registered or funded airlines count towards the consensus threshold."""
        return self.status in (AirlineStatus.REGISTERED, AirlineStatus.FUNDED)

    @property
    def is_funded(self) -> bool:
        return self.status == AirlineStatus.FUNDED
