"""
Oracle consensus engine.

This module implements oracle participation in the ledger:
- Registration against a fee, with a reproducible set of distinct indexes
  drawn from a seeded generator of (account, nonce)
- Response collection per (index, flight) bucket, one response per oracle
- Quorum detection: the first status reported by ``oracle_quorum`` distinct
  oracles seals the bucket, is written onto the flight and, for late-airline
  delays, credits every insured passenger
"""

import hashlib
import logging
from datetime import datetime
from typing import List, Optional

from ..errors import (
    AlreadyRegistered,
    DuplicateResponse,
    InsufficientFee,
    InvalidStatusCode,
    NoOpenRequest,
    NotAuthorizedIndex,
)
from ..events.bus import EventBus
from ..models.account import normalize_account
from ..models.amount import to_amount
from ..models.enums import FlightStatusCode, Role
from ..models.events import LedgerEvent, OracleRegistered, OracleReported, StatusResolved
from ..models.flight import FlightKey, make_flight_key
from ..models.oracle import OracleModel, OracleResponseBucketModel
from ..state import LedgerState
from ..utils.config import SuretyConfig
from .identity import IdentityRegistry
from .insurance_ledger import InsuranceLedger
from .lock_manager import EntityLockManager, LockScope, build_lock_key
from .operational_gate import OperationalGate

logger = logging.getLogger(__name__)


class IndexGenerator:
    """
    Seeded index generator.

    ``draw(account, nonce)`` is a pure function of the seed, the account and
    the nonce, so a ledger replayed with the same seed assigns the same
    indexes.
    """

    def __init__(self, seed: str, index_range: int):
        self.seed = seed
        self.index_range = index_range

    def draw(self, account: str, nonce: int) -> int:
        material = f"{self.seed}:{account}:{nonce}".encode("utf-8")
        digest = hashlib.sha256(material).digest()
        return int.from_bytes(digest[:8], "big") % self.index_range


def parse_status_code(value) -> FlightStatusCode:
    try:
        return FlightStatusCode(int(value))
    except (TypeError, ValueError) as e:
        raise InvalidStatusCode(f"Unknown flight status code: {value!r}", status_code=value) from e


class OracleConsensusEngine:
    """Oracle registration and quorum-based flight status resolution."""

    def __init__(
        self,
        state: LedgerState,
        identity: IdentityRegistry,
        gate: OperationalGate,
        insurance: InsuranceLedger,
        locks: EntityLockManager,
        bus: EventBus,
        config: SuretyConfig,
    ):
        self.state = state
        self.identity = identity
        self.gate = gate
        self.insurance = insurance
        self.locks = locks
        self.bus = bus
        self.config = config
        self.generator = IndexGenerator(config.index_seed, config.oracle_index_range)

    # Reads

    def is_registered(self, account: str) -> bool:
        return normalize_account(account) in self.state.oracles

    def get_oracle_indexes(self, account: str) -> List[int]:
        """
        Indexes assigned to an oracle.

        Raises:
            NotAuthorizedIndex: If the account is not a registered oracle
        """
        oracle = self.state.oracles.get(normalize_account(account))
        if oracle is None:
            raise NotAuthorizedIndex(f"{account} is not a registered oracle", oracle=account)
        return list(oracle.indexes)

    def get_response_bucket(self, index: int, flight_key: FlightKey) -> Optional[OracleResponseBucketModel]:
        bucket = self.state.buckets.get((index, flight_key))
        return bucket.model_copy(deep=True) if bucket else None

    # Registration

    def _assign_indexes(self, account: str) -> List[int]:
        """Draw distinct indexes; the caller holds the oracles lock."""
        indexes: List[int] = []
        while len(indexes) < self.config.oracle_index_count:
            index = self.generator.draw(account, self.state.oracle_nonce)
            self.state.oracle_nonce += 1
            if index not in indexes:
                indexes.append(index)
        return indexes

    def register_oracle(self, account: str, fee) -> List[int]:
        """
        Register an oracle.

        Args:
            account: Oracle account
            fee: Registration fee paid; must be at least the configured fee

        Returns:
            List[int]: Assigned indexes

        Raises:
            SystemPaused: If the ledger is paused
            InsufficientFee: If fee is below the registration fee
            AlreadyRegistered: If the account is already an oracle
        """
        self.gate.require_operational()
        account = normalize_account(account)
        fee = to_amount(fee)

        if fee < self.config.oracle_registration_fee:
            raise InsufficientFee(
                f"Oracle registration requires {self.config.oracle_registration_fee}", fee=fee
            )

        with self.gate.guarded(
            build_lock_key(LockScope.ORACLES), build_lock_key(LockScope.TREASURY)
        ):
            if account in self.state.oracles:
                raise AlreadyRegistered(f"Oracle {account} is already registered", oracle=account)

            indexes = self._assign_indexes(account)
            self.state.oracles[account] = OracleModel(account=account, indexes=indexes)
            self.state.treasury += fee
            self.identity.grant(account, Role.ORACLE)

        logger.info(f"Oracle {account} registered with indexes {indexes}")
        self.bus.publish(OracleRegistered(oracle=account, indexes=indexes))
        return list(indexes)

    # Responses

    def submit_oracle_response(
        self,
        index: int,
        airline: str,
        code: str,
        timestamp: int,
        status_code,
        caller: str,
    ) -> Optional[FlightStatusCode]:
        """
        Record an oracle's answer to an open status request.

        Args:
            index: Request index the oracle answers under
            airline: Flight airline
            code: Flight number
            timestamp: Scheduled departure
            status_code: Reported FlightStatusCode (or its integer value)
            caller: Responding oracle

        Returns:
            The status resolved by this response when it completed the quorum,
            otherwise None

        Raises:
            SystemPaused: If the ledger is paused
            InvalidFlight: If the code or timestamp is out of range
            NotAuthorizedIndex: If the index is not one of the caller's
            NoOpenRequest: If no request is open for (index, flight)
            DuplicateResponse: If the caller already answered this request
            InvalidStatusCode: If the status code is unknown
        """
        self.gate.require_operational()
        caller = normalize_account(caller)
        flight_key = make_flight_key(airline, code, timestamp)
        status = parse_status_code(status_code)

        oracle = self.state.oracles.get(caller)
        if oracle is None or index not in oracle.indexes:
            logger.warning(f"Oracle {caller} answered with unassigned index {index}")
            raise NotAuthorizedIndex(
                f"Index {index} is not assigned to {caller}", oracle=caller, index=index
            )

        bucket_key = (index, flight_key)
        events: List[LedgerEvent] = []
        resolved: Optional[FlightStatusCode] = None

        with self.gate.guarded(
            build_lock_key(LockScope.REQUESTS), build_lock_key(LockScope.FLIGHT, flight_key)
        ):
            if bucket_key not in self.state.requests:
                raise NoOpenRequest(
                    f"No open status request for {flight_key} at index {index}",
                    flight=flight_key, index=index,
                )

            bucket = self.state.buckets.get(bucket_key)
            if bucket is None:
                bucket = OracleResponseBucketModel(index=index, flight_key=flight_key)
                self.state.buckets[bucket_key] = bucket
            if caller in bucket.responders:
                raise DuplicateResponse(
                    f"Oracle {caller} already answered {flight_key} at index {index}",
                    oracle=caller, flight=flight_key,
                )

            bucket.responders.append(caller)
            bucket.responses.setdefault(status, []).append(caller)
            events.append(OracleReported(
                oracle=caller,
                index=index,
                airline=flight_key.airline,
                code=flight_key.code,
                timestamp=flight_key.timestamp,
                status_code=status,
            ))

            if bucket.is_sealed:
                logger.debug(f"Late response from {caller} on sealed bucket {flight_key}/{index}")
            elif len(bucket.reporters(status)) >= self.config.oracle_quorum:
                events.extend(self._resolve(bucket, status))
                resolved = status

        self.bus.publish_all(events)
        return resolved

    def _resolve(self, bucket: OracleResponseBucketModel, status: FlightStatusCode) -> List[LedgerEvent]:
        """Seal the bucket and apply the status; the caller holds the flight lock."""
        now = datetime.now()
        bucket.sealed_status = status
        bucket.sealed_at = now

        flight = self.state.flights[bucket.flight_key]
        flight.status_code = status
        flight.resolved_at = now

        logger.info(f"Flight {bucket.flight_key} resolved as {status.name} "
                    f"({len(bucket.reporters(status))} matching reports)")

        events: List[LedgerEvent] = [StatusResolved(
            airline=bucket.flight_key.airline,
            code=bucket.flight_key.code,
            timestamp=bucket.flight_key.timestamp,
            status_code=status,
        )]
        if status == FlightStatusCode.LATE_AIRLINE:
            events.extend(self.insurance.credit_insurees(bucket.flight_key))
        return events
