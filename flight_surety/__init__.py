"""
Flight Surety: airline flight delay insurance ledger

A multi-party ledger where:
1. Airlines join by consensus and stake funds to participate
2. Passengers buy capped insurance on registered flights
3. Oracles report flight status and a quorum of matching reports settles it
4. Passengers delayed by the airline are credited and withdraw their payout

Facts produced by the ledger can be followed in-process or published to Valkey.
"""

from .ledger import FlightSuretyLedger, create_ledger

__version__ = "0.1.0"

__all__ = ["FlightSuretyLedger", "create_ledger", "__version__"]
