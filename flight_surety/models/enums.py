"""
Enums for the flight surety ledger.

This module contains the enumeration types shared by the ledger components
and the facts they emit.
"""

from enum import Enum, IntEnum


class AirlineStatus(str, Enum):
    """Airline lifecycle: unregistered -> registered -> funded."""
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    FUNDED = "funded"


class FlightStatusCode(IntEnum):
    """Flight status codes reported by oracles (wire values)."""
    UNKNOWN = 0
    ON_TIME = 10
    LATE_AIRLINE = 20
    LATE_WEATHER = 30
    LATE_TECHNICAL = 40
    LATE_OTHER = 50


class Role(str, Enum):
    """Roles an account can hold in the identity registry."""
    OWNER = "owner"
    AIRLINE = "airline"
    PASSENGER = "passenger"
    ORACLE = "oracle"
