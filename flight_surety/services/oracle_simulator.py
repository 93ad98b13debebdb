"""
Oracle simulator for end-to-end flight status resolution.

This module plays the off-ledger oracle server:
- Registers a configurable number of oracle accounts against the fee
- Listens for StatusRequested facts on the ledger's event bus
- Makes every oracle holding the requested index answer with a status
  picked by a seeded random generator (or a fixed status)
- Counts accepted and rejected responses for reporting
"""

import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from ..errors import FlightSuretyError
from ..models.account import make_account
from ..models.enums import FlightStatusCode
from ..models.events import StatusRequested

if TYPE_CHECKING:
    from ..ledger import FlightSuretyLedger

logger = logging.getLogger(__name__)

# Oracle accounts are seeded from this offset so they never collide with
# the demo owner, airline and passenger accounts.
ORACLE_ACCOUNT_OFFSET = 1000

REPORTABLE_STATUSES = [
    FlightStatusCode.ON_TIME,
    FlightStatusCode.LATE_AIRLINE,
    FlightStatusCode.LATE_WEATHER,
    FlightStatusCode.LATE_TECHNICAL,
    FlightStatusCode.LATE_OTHER,
]


@dataclass
class OracleSimulationMetrics:
    """Response counters collected by the simulator."""
    requests_seen: int = 0
    responses_accepted: int = 0
    responses_rejected: int = 0
    resolutions: int = 0
    rejections: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requests_seen": self.requests_seen,
            "responses_accepted": self.responses_accepted,
            "responses_rejected": self.responses_rejected,
            "resolutions": self.resolutions,
            "rejections": dict(self.rejections),
        }


class OracleSimulator:
    """
    Registers simulated oracles and answers status requests.

    Features:
    - Reproducible status choices through a seeded random generator
    - Fixed-status mode for deterministic demonstrations
    - Only oracles assigned the requested index answer, as a real oracle would
    """

    def __init__(
        self,
        ledger: "FlightSuretyLedger",
        oracle_count: int = 20,
        status: Optional[FlightStatusCode] = None,
        seed: int = 42,
        status_picker: Optional[Callable[[StatusRequested, str], FlightStatusCode]] = None,
    ):
        """
        Initialize oracle simulator.

        Args:
            ledger: Ledger the oracles register with and answer to
            oracle_count: Number of oracles to register
            status: Fixed status every oracle reports; random when None
            seed: Seed for random status choices
            status_picker: Custom strategy taking (request, oracle) and returning a status
        """
        self.ledger = ledger
        self.oracle_count = oracle_count
        self.status = status
        self.random = random.Random(seed)
        self.status_picker = status_picker
        self.oracles: Dict[str, List[int]] = {}
        self.metrics = OracleSimulationMetrics()
        self._unsubscribe: Optional[Callable[[], None]] = None

        logger.info(f"OracleSimulator initialized with {oracle_count} oracles")

    def register_oracles(self) -> Dict[str, List[int]]:
        """
        Register the simulated oracles, paying the configured fee.

        Returns:
            Mapping of oracle account to assigned indexes
        """
        fee = self.ledger.config.oracle_registration_fee
        for number in range(self.oracle_count):
            account = make_account(ORACLE_ACCOUNT_OFFSET + number)
            if account in self.oracles:
                continue
            self.oracles[account] = self.ledger.register_oracle(account, fee)
        logger.info(f"Registered {len(self.oracles)} simulated oracles")
        return dict(self.oracles)

    def start(self) -> None:
        """Register oracles (if needed) and start answering status requests."""
        if not self.oracles:
            self.register_oracles()
        if self._unsubscribe is None:
            self._unsubscribe = self.ledger.subscribe(self.handle_request, StatusRequested)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def pick_status(self, request: StatusRequested, oracle: str) -> FlightStatusCode:
        if self.status_picker is not None:
            return self.status_picker(request, oracle)
        if self.status is not None:
            return self.status
        return self.random.choice(REPORTABLE_STATUSES)

    def handle_request(self, request: StatusRequested) -> None:
        """Answer a status request with every oracle assigned its index."""
        self.metrics.requests_seen += 1
        for oracle, indexes in self.oracles.items():
            if request.index not in indexes:
                continue
            status = self.pick_status(request, oracle)
            try:
                resolved = self.ledger.submit_oracle_response(
                    request.index, request.airline, request.code, request.timestamp, status, oracle
                )
            except FlightSuretyError as e:
                self.metrics.responses_rejected += 1
                name = type(e).__name__
                self.metrics.rejections[name] = self.metrics.rejections.get(name, 0) + 1
                logger.debug(f"Oracle {oracle} response rejected: {e}")
                continue

            self.metrics.responses_accepted += 1
            if resolved is not None:
                self.metrics.resolutions += 1

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
