"""
Flight surety ledger facade.

FlightSuretyLedger owns the ledger state and wires the components together:

    identity -> operational gate -> airline consensus -> insurance ledger
             -> flight registry -> oracle consensus

It exposes the complete operation surface consumed by transports, the CLI
and the oracle simulator. Every mutating operation is gated by the
operational flag and applied atomically; facts are delivered through the
ledger's EventBus.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .events.bus import EventBus, Subscriber
from .events.client import ValkeyClient
from .events.publisher import ValkeyEventPublisher
from .models.account import normalize_account
from .models.airline import AirlineModel
from .models.enums import AirlineStatus, FlightStatusCode, Role
from .models.flight import FlightKey, FlightModel
from .models.insurance import InsurancePolicyModel
from .models.oracle import OracleResponseBucketModel
from .services.airline_consensus import AirlineConsensusEngine
from .services.flight_registry import FlightRegistry
from .services.identity import IdentityRegistry
from .services.insurance_ledger import InsuranceLedger
from .services.lock_manager import EntityLockManager
from .services.operational_gate import OperationalGate
from .services.oracle_consensus import OracleConsensusEngine
from .services.payments import InMemoryPaymentGateway, PaymentGateway
from .state import LedgerState
from .utils.config import SuretyConfig, get_config

logger = logging.getLogger(__name__)


class FlightSuretyLedger:
    """
    Airline flight insurance ledger.

    Args:
        owner: Account allowed to pause and resume the ledger
        genesis_airline: Airline registered at creation without a vote
        config: Ledger configuration; defaults to the environment configuration
        gateway: Payment gateway used for withdrawals
        bus: Event bus for facts; a private bus is created when omitted
    """

    def __init__(
        self,
        owner: str,
        genesis_airline: str,
        config: Optional[SuretyConfig] = None,
        gateway: Optional[PaymentGateway] = None,
        bus: Optional[EventBus] = None,
    ):
        self.config = config or get_config()
        self.state = LedgerState(owner=normalize_account(owner))
        self.bus = bus or EventBus()
        self.gateway = gateway or InMemoryPaymentGateway()
        self.locks = EntityLockManager(timeout_seconds=self.config.lock_timeout_seconds)
        self.publisher: Optional[ValkeyEventPublisher] = None

        self.identity = IdentityRegistry(self.state)
        self.gate = OperationalGate(self.state, self.identity, self.locks, self.bus)
        self.airlines = AirlineConsensusEngine(
            self.state, self.identity, self.gate, self.locks, self.bus, self.config, genesis_airline
        )
        self.insurance = InsuranceLedger(
            self.state, self.identity, self.gate, self.locks, self.bus, self.config, self.gateway
        )
        self.flights = FlightRegistry(
            self.state, self.gate, self.airlines, self.insurance, self.locks, self.bus, self.config
        )
        self.oracles = OracleConsensusEngine(
            self.state, self.identity, self.gate, self.insurance, self.locks, self.bus, self.config
        )

        logger.info(f"FlightSuretyLedger initialized (owner: {self.state.owner})")

    # Facts

    def subscribe(self, handler: Subscriber, event_type: Optional[type] = None):
        """Subscribe to ledger facts; returns an unsubscribe callable."""
        return self.bus.subscribe(handler, event_type)

    # Operational gate

    def is_operational(self) -> bool:
        return self.gate.is_operational()

    def set_operational_status(self, operational: bool, caller: str) -> None:
        self.gate.set_operational_status(operational, caller)

    # Airlines

    def register_airline(self, candidate: str, caller: str) -> AirlineStatus:
        return self.airlines.register_airline(candidate, caller)

    def fund_airline(self, caller: str, amount) -> None:
        self.airlines.fund_airline(caller, amount)

    def is_airline_registered(self, account: str) -> bool:
        return self.airlines.is_registered(account)

    def is_airline_funded(self, account: str) -> bool:
        return self.airlines.is_funded(account)

    def registered_airline_count(self) -> int:
        return self.airlines.registered_count()

    def get_airline(self, account: str) -> Optional[AirlineModel]:
        return self.airlines.get_airline(account)

    def votes_for(self, candidate: str) -> List[str]:
        return self.airlines.votes_for(candidate)

    # Flights

    def register_flight(self, airline: str, code: str, timestamp: int, caller: str, premium=0) -> FlightKey:
        return self.flights.register_flight(airline, code, timestamp, caller, premium)

    def fetch_flight_status(self, airline: str, code: str, timestamp: int, caller: str) -> int:
        return self.flights.fetch_flight_status(airline, code, timestamp, caller)

    def flight_key(self, airline: str, code: str, timestamp: int) -> FlightKey:
        return FlightRegistry.make_key(airline, code, timestamp)

    def get_flight(self, flight_key: FlightKey) -> Optional[FlightModel]:
        return self.flights.get_flight(flight_key)

    def list_flights(self, airline: Optional[str] = None) -> List[FlightModel]:
        return self.flights.list_flights(airline)

    def flight_status(self, flight_key: FlightKey) -> FlightStatusCode:
        flight = self.state.flights.get(flight_key)
        return flight.status_code if flight else FlightStatusCode.UNKNOWN

    # Insurance

    def buy_insurance(self, passenger: str, flight_key: FlightKey, premium) -> InsurancePolicyModel:
        return self.insurance.buy_insurance(passenger, flight_key, premium)

    def insuree_balance(self, passenger: str) -> Decimal:
        return self.insurance.insuree_balance(passenger)

    def make_withdrawal(self, passenger: str) -> Decimal:
        return self.insurance.make_withdrawal(passenger)

    def get_policy(self, passenger: str, flight_key: FlightKey) -> Optional[InsurancePolicyModel]:
        return self.insurance.get_policy(passenger, flight_key)

    def policies_for_flight(self, flight_key: FlightKey) -> List[InsurancePolicyModel]:
        return self.insurance.policies_for_flight(flight_key)

    def treasury_balance(self) -> Decimal:
        return self.state.treasury

    # Oracles

    def register_oracle(self, account: str, fee) -> List[int]:
        return self.oracles.register_oracle(account, fee)

    def submit_oracle_response(
        self, index: int, airline: str, code: str, timestamp: int, status_code, caller: str
    ) -> Optional[FlightStatusCode]:
        return self.oracles.submit_oracle_response(index, airline, code, timestamp, status_code, caller)

    def get_oracle_indexes(self, account: str) -> List[int]:
        return self.oracles.get_oracle_indexes(account)

    def is_oracle_registered(self, account: str) -> bool:
        return self.oracles.is_registered(account)

    def get_response_bucket(self, index: int, flight_key: FlightKey) -> Optional[OracleResponseBucketModel]:
        return self.oracles.get_response_bucket(index, flight_key)

    # Identity

    def roles_of(self, account: str) -> List[Role]:
        return sorted(self.identity.roles_of(account), key=lambda role: role.value)

    def get_summary(self) -> Dict[str, Any]:
        """
        Summary of the ledger for the CLI and diagnostics.

        Returns:
            Dictionary with table sizes, treasury and lock statistics
        """
        return {
            "operational": self.state.operational,
            "owner": self.state.owner,
            "treasury": str(self.state.treasury),
            "airlines": {
                status.value: sum(1 for a in self.state.airlines.values() if a.status == status)
                for status in AirlineStatus
            },
            "flights": len(self.state.flights),
            "policies": sum(len(p) for p in self.state.policies.values()),
            "oracles": len(self.state.oracles),
            "status_requests": self.state.request_counter,
            "outstanding_credit": str(sum(self.state.balances.values(), Decimal("0"))),
            "locks": self.locks.get_lock_metrics().get("summary", {}),
        }


def create_ledger(
    owner: str,
    genesis_airline: str,
    config: Optional[SuretyConfig] = None,
    gateway: Optional[PaymentGateway] = None,
    publish_events: Optional[bool] = None,
) -> FlightSuretyLedger:
    """
    Build a ledger and, when enabled, attach the Valkey fact publisher.

    Args:
        owner: Ledger owner account
        genesis_airline: Airline registered at creation
        config: Ledger configuration (environment configuration when omitted)
        gateway: Payment gateway for withdrawals
        publish_events: Override ``config.publish_events``

    Returns:
        FlightSuretyLedger: Ready-to-use ledger
    """
    config = config or get_config()
    ledger = FlightSuretyLedger(owner, genesis_airline, config=config, gateway=gateway)

    if publish_events if publish_events is not None else config.publish_events:
        publisher = ValkeyEventPublisher(ValkeyClient(), channel_prefix=config.event_channel_prefix)
        publisher.attach(ledger.bus)
        ledger.publisher = publisher

    return ledger


__all__ = ["FlightSuretyLedger", "create_ledger"]
