"""
Insurance and escrow models for the flight surety ledger.

This module contains the policy bought by a passenger against one flight and
the credited balance a passenger can withdraw.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .flight import FlightKey


class InsurancePolicyModel(BaseModel):
    """
    Insurance policy for one (passenger, flight) pair.

    The policy is consumed, never deleted, once its payout has been credited.
    """
    model_config = ConfigDict(from_attributes=True)

    passenger: str = Field(..., description="Insured passenger account")
    flight_key: FlightKey
    premium: Decimal = Field(..., gt=0, description="Premium paid into escrow")
    payout_multiplier: Decimal = Field(default=Decimal("1.5"), gt=0, description="Payout as a multiple of premium")
    purchased_at: datetime = Field(default_factory=datetime.now, description="Purchase time")
    consumed: bool = Field(default=False, description="Whether the payout has been credited")
    credited_at: Optional[datetime] = Field(None, description="Time the payout was credited")

    @property
    def payout(self) -> Decimal:
        return self.premium * self.payout_multiplier


class PassengerBalanceModel(BaseModel):
    """Snapshot of a passenger's withdrawable balance."""
    model_config = ConfigDict(from_attributes=True)

    passenger: str
    credited: Decimal = Field(default=Decimal("0"), ge=0, description="Credited payouts awaiting withdrawal")
