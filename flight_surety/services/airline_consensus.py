"""
Airline consensus engine.

This module implements the airline lifecycle used by the ledger:
- Unregistered -> Registered, directly while fewer than the threshold number of
  airlines are registered, by a majority vote of funded airlines afterwards
- Registered -> Funded, by paying the minimum stake into the treasury

Only funded airlines may register (or vote for) other airlines.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..errors import (
    AlreadyRegistered,
    CallerNotFunded,
    DuplicateVote,
    InsufficientFunds,
    NotRegistered,
)
from ..events.bus import EventBus
from ..models.account import normalize_account
from ..models.airline import AirlineModel
from ..models.amount import to_amount
from ..models.enums import AirlineStatus, Role
from ..models.events import AirlineFunded, AirlineRegistered, AirlineVoted, LedgerEvent
from ..state import LedgerState
from ..utils.config import SuretyConfig
from .identity import IdentityRegistry
from .lock_manager import EntityLockManager, LockScope, build_lock_key
from .operational_gate import OperationalGate

logger = logging.getLogger(__name__)


def consensus_threshold(registered_count: int) -> int:
    """Votes needed to register a candidate: ceil(N / 2)."""
    return (registered_count + 1) // 2


class AirlineConsensusEngine:
    """
    Multi-party airline registration and funding.

    The genesis airline is registered when the engine is created and counts
    towards the registered total from the start.
    """

    def __init__(
        self,
        state: LedgerState,
        identity: IdentityRegistry,
        gate: OperationalGate,
        locks: EntityLockManager,
        bus: EventBus,
        config: SuretyConfig,
        genesis_airline: str,
    ):
        self.state = state
        self.identity = identity
        self.gate = gate
        self.locks = locks
        self.bus = bus
        self.config = config

        genesis = normalize_account(genesis_airline)
        self.state.airlines[genesis] = AirlineModel(
            account=genesis,
            status=AirlineStatus.REGISTERED,
            registered_at=datetime.now(),
        )
        self.identity.grant(genesis, Role.AIRLINE)
        logger.info(f"Genesis airline registered: {genesis}")

    # Reads

    def get_airline(self, account: str) -> Optional[AirlineModel]:
        airline = self.state.airlines.get(normalize_account(account))
        return airline.model_copy(deep=True) if airline else None

    def status_of(self, account: str) -> AirlineStatus:
        airline = self.state.airlines.get(normalize_account(account))
        return airline.status if airline else AirlineStatus.UNREGISTERED

    def is_registered(self, account: str) -> bool:
        """True for registered and funded airlines."""
        return self.status_of(account) in (AirlineStatus.REGISTERED, AirlineStatus.FUNDED)

    def is_funded(self, account: str) -> bool:
        return self.status_of(account) == AirlineStatus.FUNDED

    def registered_count(self) -> int:
        return sum(1 for airline in self.state.airlines.values() if airline.is_registered)

    def votes_for(self, candidate: str) -> List[str]:
        airline = self.state.airlines.get(normalize_account(candidate))
        return list(airline.votes) if airline else []

    # Mutations

    def register_airline(self, candidate: str, caller: str) -> AirlineStatus:
        """
        Register a candidate airline, or record the caller's vote for it.

        Args:
            candidate: Airline account to register
            caller: Funded airline submitting the registration

        Returns:
            AirlineStatus: Candidate status after the call (REGISTERED, or
            UNREGISTERED while votes are still below the threshold)

        Raises:
            SystemPaused: If the ledger is paused
            CallerNotFunded: If caller is not a funded airline
            AlreadyRegistered: If candidate is already registered or funded
            DuplicateVote: If caller already voted for candidate
        """
        self.gate.require_operational()
        candidate = normalize_account(candidate)
        caller = normalize_account(caller)
        events: List[LedgerEvent] = []

        with self.gate.guarded(build_lock_key(LockScope.AIRLINES)):
            if not self.is_funded(caller):
                logger.warning(f"Airline registration by unfunded caller {caller} rejected")
                raise CallerNotFunded(
                    f"Caller {caller} is not a funded airline", caller=caller
                )

            existing = self.state.airlines.get(candidate)
            if existing is not None and existing.is_registered:
                raise AlreadyRegistered(
                    f"Airline {candidate} is already {existing.status.value}", airline=candidate
                )

            registered_count = self.registered_count()

            if registered_count < self.config.consensus_airline_threshold:
                airline = existing or AirlineModel(account=candidate)
                airline.status = AirlineStatus.REGISTERED
                airline.votes = []
                airline.registered_at = datetime.now()
                self.state.airlines[candidate] = airline
                self.identity.grant(candidate, Role.AIRLINE)
                events.append(AirlineRegistered(airline=candidate, registered_by=caller))
                logger.info(f"Airline {candidate} registered by {caller} "
                            f"({registered_count + 1} registered)")
            else:
                if existing is not None and caller in existing.votes:
                    raise DuplicateVote(
                        f"{caller} already voted for {candidate}", voter=caller, candidate=candidate
                    )

                airline = existing or AirlineModel(account=candidate)
                airline.votes.append(caller)
                self.state.airlines[candidate] = airline

                threshold = consensus_threshold(registered_count)
                vote_count = len(airline.votes)
                events.append(AirlineVoted(
                    candidate=candidate, voter=caller, votes=vote_count, threshold=threshold
                ))
                logger.debug(f"Vote for {candidate} by {caller}: {vote_count}/{threshold}")

                if vote_count >= threshold:
                    airline.status = AirlineStatus.REGISTERED
                    airline.votes = []
                    airline.registered_at = datetime.now()
                    self.identity.grant(candidate, Role.AIRLINE)
                    events.append(AirlineRegistered(
                        airline=candidate, registered_by=caller, votes=vote_count
                    ))
                    logger.info(f"Airline {candidate} registered by consensus "
                                f"({vote_count}/{threshold} votes)")

            status = airline.status

        self.bus.publish_all(events)
        return status

    def fund_airline(self, caller: str, amount: Decimal) -> None:
        """
        Pay the airline stake and become funded.

        Args:
            caller: Registered airline paying the stake
            amount: Amount paid; must be at least the configured minimum

        Raises:
            SystemPaused: If the ledger is paused
            InsufficientFunds: If amount is below the minimum stake
            NotRegistered: If caller is not in REGISTERED state
        """
        self.gate.require_operational()
        caller = normalize_account(caller)
        amount = to_amount(amount)
        if amount < self.config.airline_funding_minimum:
            logger.warning(f"Funding of {amount} by {caller} below minimum "
                           f"{self.config.airline_funding_minimum}")
            raise InsufficientFunds(
                f"Funding requires at least {self.config.airline_funding_minimum}",
                amount=amount,
            )

        with self.gate.guarded(
            build_lock_key(LockScope.AIRLINES), build_lock_key(LockScope.TREASURY)
        ):
            airline = self.state.airlines.get(caller)
            if airline is None or airline.status != AirlineStatus.REGISTERED:
                current = airline.status.value if airline else AirlineStatus.UNREGISTERED.value
                raise NotRegistered(
                    f"Airline {caller} must be registered to fund (current: {current})",
                    airline=caller,
                )

            airline.status = AirlineStatus.FUNDED
            airline.funded_amount = amount
            airline.funded_at = datetime.now()
            self.state.treasury += amount

        logger.info(f"Airline {caller} funded with {amount}")
        self.bus.publish(AirlineFunded(airline=caller, amount=amount))
