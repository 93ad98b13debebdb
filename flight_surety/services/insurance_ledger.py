"""
Insurance and escrow ledger.

This module implements passenger insurance for the ledger:
- Capped premium purchase, one policy per (passenger, flight), escrowed into
  the treasury
- Payout credit (premium * multiplier) when a flight resolves as late due to
  the airline, exactly once per policy
- Withdrawal of credited balances with zero-before-transfer and
  restore-on-failure, so concurrent or re-entrant withdrawals move a credited
  balance at most once
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..errors import (
    DuplicatePolicy,
    FlightNotFound,
    InvalidAmount,
    PremiumExceedsCap,
    TransferFailed,
)
from ..events.bus import EventBus
from ..models.account import normalize_account
from ..models.amount import to_amount
from ..models.enums import Role
from ..models.events import InsurancePurchased, LedgerEvent, PayoutCredited, WithdrawalPaid
from ..models.flight import FlightKey
from ..models.insurance import InsurancePolicyModel, PassengerBalanceModel
from ..state import LedgerState
from ..utils.config import SuretyConfig
from .identity import IdentityRegistry
from .lock_manager import EntityLockManager, LockScope, build_lock_key
from .operational_gate import OperationalGate
from .payments import PaymentGateway

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class InsuranceLedger:
    """Premium escrow, payout credit and guarded withdrawals."""

    def __init__(
        self,
        state: LedgerState,
        identity: IdentityRegistry,
        gate: OperationalGate,
        locks: EntityLockManager,
        bus: EventBus,
        config: SuretyConfig,
        gateway: PaymentGateway,
    ):
        self.state = state
        self.identity = identity
        self.gate = gate
        self.locks = locks
        self.bus = bus
        self.config = config
        self.gateway = gateway

    # Reads

    def insuree_balance(self, passenger: str) -> Decimal:
        """Credited balance of a passenger; zero for unknown accounts."""
        return self.state.balances.get(normalize_account(passenger), ZERO)

    def get_balance(self, passenger: str) -> PassengerBalanceModel:
        passenger = normalize_account(passenger)
        return PassengerBalanceModel(passenger=passenger, credited=self.insuree_balance(passenger))

    def get_policy(self, passenger: str, flight_key: FlightKey) -> Optional[InsurancePolicyModel]:
        policy = self.state.policies.get(flight_key, {}).get(normalize_account(passenger))
        return policy.model_copy(deep=True) if policy else None

    def policies_for_flight(self, flight_key: FlightKey) -> List[InsurancePolicyModel]:
        return [policy.model_copy(deep=True)
                for policy in self.state.policies.get(flight_key, {}).values()]

    # Purchase

    def validate_premium(self, premium) -> Decimal:
        """
        Check a premium against the cap.

        Raises:
            InvalidAmount: If premium is not a positive amount
            PremiumExceedsCap: If premium is above the cap (the cap itself is allowed)
        """
        premium = to_amount(premium)
        if premium <= 0:
            raise InvalidAmount(f"Premium must be positive: {premium}", premium=premium)
        if premium > self.config.insurance_premium_cap:
            logger.warning(f"Premium {premium} exceeds cap {self.config.insurance_premium_cap}")
            raise PremiumExceedsCap(
                f"Premium {premium} exceeds cap {self.config.insurance_premium_cap}",
                premium=premium,
            )
        return premium

    def issue_policy(self, passenger: str, flight_key: FlightKey, premium: Decimal) -> List[LedgerEvent]:
        """
        Create a policy and escrow its premium.

        The caller holds the flight and treasury locks and has already
        validated the premium and the flight's existence.

        Raises:
            DuplicatePolicy: If the passenger already holds a policy on the flight
        """
        flight_policies = self.state.policies.setdefault(flight_key, {})
        if passenger in flight_policies:
            raise DuplicatePolicy(
                f"Passenger {passenger} already insured on {flight_key}",
                passenger=passenger, flight=flight_key,
            )

        flight_policies[passenger] = InsurancePolicyModel(
            passenger=passenger,
            flight_key=flight_key,
            premium=premium,
            payout_multiplier=self.config.payout_multiplier,
        )
        self.state.treasury += premium
        self.identity.grant(passenger, Role.PASSENGER)
        logger.info(f"Passenger {passenger} insured {flight_key} for {premium}")
        return [InsurancePurchased(passenger=passenger, flight_key=flight_key, premium=premium)]

    def buy_insurance(self, passenger: str, flight_key: FlightKey, premium) -> InsurancePolicyModel:
        """
        Buy insurance for a passenger on a registered flight.

        Args:
            passenger: Insured passenger account
            flight_key: Flight to insure
            premium: Premium paid (0 < premium <= cap)

        Returns:
            InsurancePolicyModel: Copy of the created policy

        Raises:
            SystemPaused: If the ledger is paused
            PremiumExceedsCap: If premium is above the cap
            FlightNotFound: If the flight is not registered
            DuplicatePolicy: If the passenger already insured this flight
        """
        self.gate.require_operational()
        passenger = normalize_account(passenger)
        premium = self.validate_premium(premium)

        with self.gate.guarded(
            build_lock_key(LockScope.FLIGHT, flight_key), build_lock_key(LockScope.TREASURY)
        ):
            if flight_key not in self.state.flights:
                raise FlightNotFound(f"Flight {flight_key} is not registered", flight=flight_key)
            events = self.issue_policy(passenger, flight_key, premium)
            policy = self.state.policies[flight_key][passenger].model_copy(deep=True)

        self.bus.publish_all(events)
        return policy

    # Resolution

    def credit_insurees(self, flight_key: FlightKey) -> List[LedgerEvent]:
        """
        Credit every unconsumed policy on a flight resolved as late due to the airline.

        Idempotent: consumed policies are skipped, so a second call for the
        same flight credits nothing. Facts are returned for the caller to
        publish once it has released its own locks.

        Returns:
            List of PayoutCredited facts in purchase order
        """
        flight_lock = build_lock_key(LockScope.FLIGHT, flight_key)
        with self.locks.lock_context(flight_lock):
            pending = [policy for policy in self.state.policies.get(flight_key, {}).values()
                       if not policy.consumed]
            if not pending:
                return []

            balance_locks = [build_lock_key(LockScope.BALANCE, policy.passenger) for policy in pending]
            events: List[LedgerEvent] = []

            with self.locks.lock_context(flight_lock, *balance_locks):
                now = datetime.now()
                for policy in pending:
                    amount = policy.payout
                    self.state.balances[policy.passenger] = (
                        self.state.balances.get(policy.passenger, ZERO) + amount
                    )
                    policy.consumed = True
                    policy.credited_at = now
                    events.append(PayoutCredited(
                        passenger=policy.passenger, flight_key=flight_key, amount=amount
                    ))

            total = sum((event.amount for event in events), ZERO)
            logger.info(f"Credited {len(events)} insurees on {flight_key} (total {total})")
            return events

    # Withdrawal

    def make_withdrawal(self, passenger: str) -> Decimal:
        """
        Withdraw a passenger's credited balance.

        The balance (and treasury) is debited before the transfer and no lock
        is held while the gateway runs; a re-entrant or concurrent call sees
        a zero balance and returns without transferring.

        Returns:
            Decimal: Amount transferred (zero when nothing was credited)

        Raises:
            SystemPaused: If the ledger is paused
            TransferFailed: If the gateway rejected the transfer; the balance is restored
        """
        self.gate.require_operational()
        passenger = normalize_account(passenger)
        balance_lock = build_lock_key(LockScope.BALANCE, passenger)
        treasury_lock = build_lock_key(LockScope.TREASURY)

        with self.gate.guarded(balance_lock, treasury_lock):
            amount = self.state.balances.get(passenger, ZERO)
            if amount <= 0:
                return ZERO
            if self.state.treasury < amount:
                logger.error(f"Treasury {self.state.treasury} cannot cover withdrawal of {amount}")
                raise TransferFailed(
                    f"Treasury cannot cover withdrawal of {amount}", passenger=passenger
                )
            self.state.balances[passenger] = ZERO
            self.state.treasury -= amount

        try:
            self.gateway.transfer(passenger, amount)
        except Exception as e:
            # Restored even if the ledger was paused meanwhile
            with self.locks.lock_context(balance_lock, treasury_lock):
                self.state.balances[passenger] = self.state.balances.get(passenger, ZERO) + amount
                self.state.treasury += amount
            logger.error(f"Transfer of {amount} to {passenger} failed, balance restored: {e}")
            raise TransferFailed(
                f"Transfer of {amount} to {passenger} failed", passenger=passenger
            ) from e

        logger.info(f"Passenger {passenger} withdrew {amount}")
        self.bus.publish(WithdrawalPaid(passenger=passenger, amount=amount))
        return amount
