"""
Flight registry.

Flights are registered against funded airlines and keyed by (airline, code,
timestamp). Registration can carry a premium, in which case the caller is
insured on the new flight in the same atomic step. Status fetches open an
oracle request for the flight under a derived selection index.
"""

import hashlib
import logging
from typing import List, Optional

from ..errors import AirlineNotFunded, FlightAlreadyExists, FlightNotFound
from ..events.bus import EventBus
from ..models.account import normalize_account
from ..models.amount import to_amount
from ..models.events import FlightRegistered, LedgerEvent, StatusRequested
from ..models.flight import FlightKey, FlightModel, make_flight_key
from ..models.oracle import OracleRequestModel
from ..state import LedgerState
from ..utils.config import SuretyConfig
from .airline_consensus import AirlineConsensusEngine
from .insurance_ledger import InsuranceLedger
from .lock_manager import EntityLockManager, LockScope, build_lock_key
from .operational_gate import OperationalGate

logger = logging.getLogger(__name__)


def derive_request_index(seed: str, flight_key: FlightKey, counter: int, index_range: int) -> int:
    """Deterministic oracle selection index for the ``counter``-th status request."""
    material = f"{seed}:{flight_key.airline}:{flight_key.code}:{flight_key.timestamp}:{counter}"
    digest = hashlib.sha256(material.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % index_range


class FlightRegistry:
    """Registration of flights and status requests."""

    def __init__(
        self,
        state: LedgerState,
        gate: OperationalGate,
        airlines: AirlineConsensusEngine,
        insurance: InsuranceLedger,
        locks: EntityLockManager,
        bus: EventBus,
        config: SuretyConfig,
    ):
        self.state = state
        self.gate = gate
        self.airlines = airlines
        self.insurance = insurance
        self.locks = locks
        self.bus = bus
        self.config = config

    @staticmethod
    def make_key(airline: str, code: str, timestamp: int) -> FlightKey:
        return make_flight_key(airline, code, timestamp)

    def get_flight(self, flight_key: FlightKey) -> Optional[FlightModel]:
        flight = self.state.flights.get(flight_key)
        return flight.model_copy(deep=True) if flight else None

    def list_flights(self, airline: Optional[str] = None) -> List[FlightModel]:
        flights = list(self.state.flights.values())
        if airline is not None:
            airline = normalize_account(airline)
            flights = [flight for flight in flights if flight.airline == airline]
        return [flight.model_copy(deep=True) for flight in flights]

    def register_flight(
        self,
        airline: str,
        code: str,
        timestamp: int,
        caller: str,
        premium=0,
    ) -> FlightKey:
        """
        Register a flight, optionally insuring the caller on it.

        Args:
            airline: Funded airline operating the flight
            code: Flight number
            timestamp: Scheduled departure (unix seconds)
            caller: Account registering the flight
            premium: Insurance premium paid by the caller; 0 registers without insurance

        Returns:
            FlightKey: Key of the new flight

        Raises:
            SystemPaused: If the ledger is paused
            InvalidFlight: If the code or timestamp is out of range
            AirlineNotFunded: If the airline is not funded
            FlightAlreadyExists: If the key is already registered
            PremiumExceedsCap: If premium is above the cap
        """
        self.gate.require_operational()
        caller = normalize_account(caller)
        flight_key = self.make_key(airline, code, timestamp)
        premium = to_amount(premium)
        events: List[LedgerEvent] = []

        lock_keys = [build_lock_key(LockScope.FLIGHT, flight_key)]
        if premium > 0:
            lock_keys.append(build_lock_key(LockScope.TREASURY))

        with self.gate.guarded(*lock_keys):
            if not self.airlines.is_funded(flight_key.airline):
                raise AirlineNotFunded(
                    f"Airline {flight_key.airline} is not funded", airline=flight_key.airline
                )
            if flight_key in self.state.flights:
                raise FlightAlreadyExists(f"Flight {flight_key} already exists", flight=flight_key)
            if premium > 0:
                premium = self.insurance.validate_premium(premium)

            self.state.flights[flight_key] = FlightModel(key=flight_key, registered_by=caller)
            events.append(FlightRegistered(flight_key=flight_key, registered_by=caller))
            logger.info(f"Flight {flight_key} registered by {caller}")

            if premium > 0:
                events.extend(self.insurance.issue_policy(caller, flight_key, premium))

        self.bus.publish_all(events)
        return flight_key

    def fetch_flight_status(self, airline: str, code: str, timestamp: int, caller: str) -> int:
        """
        Ask oracles for a flight's status.

        Opens a request for (index, flight) where the index is derived from the
        flight and a monotonically increasing request counter, and broadcasts a
        StatusRequested fact. An existing request for the same index is kept
        as is, including its responses, and its identifier is the one returned
        and broadcast.

        Returns:
            int: Identifier of the open request for the derived index

        Raises:
            SystemPaused: If the ledger is paused
            InvalidFlight: If the code or timestamp is out of range
            FlightNotFound: If the flight is not registered
        """
        self.gate.require_operational()
        caller = normalize_account(caller)
        flight_key = self.make_key(airline, code, timestamp)

        with self.gate.guarded(
            build_lock_key(LockScope.REQUESTS), build_lock_key(LockScope.FLIGHT, flight_key)
        ):
            if flight_key not in self.state.flights:
                raise FlightNotFound(f"Flight {flight_key} is not registered", flight=flight_key)

            self.state.request_counter += 1
            counter = self.state.request_counter
            index = derive_request_index(
                self.config.index_seed, flight_key, counter, self.config.oracle_index_range
            )
            request = self.state.requests.get((index, flight_key))
            if request is None:
                request = OracleRequestModel(
                    request_id=counter,
                    index=index,
                    flight_key=flight_key,
                    requester=caller,
                )
                self.state.requests[(index, flight_key)] = request
            request_id = request.request_id

        logger.info(f"Status request {request_id} for {flight_key} (index {index})")
        self.bus.publish(StatusRequested(
            request_id=request_id,
            airline=flight_key.airline,
            code=flight_key.code,
            timestamp=flight_key.timestamp,
            index=index,
        ))
        return request_id
