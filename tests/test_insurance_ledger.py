"""
Tests for insurance purchase, payout credit and guarded withdrawals.

Covers the withdrawal discipline under failure, re-entrancy and concurrency:
a credited balance is transferred at most once and restored if the transfer
fails.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from flight_surety.errors import (
    DuplicatePolicy,
    FlightNotFound,
    InvalidAmount,
    PremiumExceedsCap,
    TransferFailed,
)
from flight_surety.ledger import FlightSuretyLedger
from flight_surety.models import PayoutCredited, Role, WithdrawalPaid, make_account
from flight_surety.services.payments import InMemoryPaymentGateway, PaymentError
from flight_surety.utils.config import SuretyConfig


OWNER = make_account(1)
GENESIS = make_account(10)
PASSENGER = make_account(100)
OTHER_PASSENGER = make_account(101)


class FailingGateway:
    """Gateway that rejects every transfer."""

    def __init__(self):
        self.attempts = 0

    def transfer(self, account, amount):
        self.attempts += 1
        raise PaymentError("recipient rejected the transfer")


class ReentrantGateway(InMemoryPaymentGateway):
    """Gateway whose recipient calls back into make_withdrawal during the transfer."""

    def __init__(self):
        super().__init__()
        self.ledger = None
        self.reentrant_results = []

    def transfer(self, account, amount):
        if self.ledger is not None and not self.reentrant_results:
            self.reentrant_results.append(self.ledger.make_withdrawal(account))
        super().transfer(account, amount)


def build_ledger(gateway=None):
    ledger = FlightSuretyLedger(OWNER, GENESIS, config=SuretyConfig(), gateway=gateway)
    ledger.fund_airline(GENESIS, 10)
    return ledger


@pytest.fixture
def gateway():
    return InMemoryPaymentGateway()


@pytest.fixture
def ledger(gateway):
    return build_ledger(gateway)


@pytest.fixture
def flight_key(ledger):
    return ledger.register_flight(GENESIS, "SA100", 1000, GENESIS)


def credit(ledger, flight_key):
    """Credit insurees on a flight as if oracles resolved it LATE_AIRLINE."""
    events = ledger.insurance.credit_insurees(flight_key)
    ledger.bus.publish_all(events)
    return events


class TestBuyInsurance:
    """Test premium caps, duplicates and escrow."""

    def test_buy_at_cap(self, ledger, flight_key):
        policy = ledger.buy_insurance(PASSENGER, flight_key, 1)
        assert policy.premium == Decimal("1")
        assert policy.payout == Decimal("1.5")
        assert ledger.treasury_balance() == Decimal("11")
        assert Role.PASSENGER in ledger.roles_of(PASSENGER)

    def test_premium_above_cap(self, ledger, flight_key):
        with pytest.raises(PremiumExceedsCap):
            ledger.buy_insurance(PASSENGER, flight_key, "1.000001")
        assert ledger.get_policy(PASSENGER, flight_key) is None
        assert ledger.treasury_balance() == Decimal("10")

    @pytest.mark.parametrize("premium", [0, -1, "abc"])
    def test_invalid_premium(self, ledger, flight_key, premium):
        with pytest.raises(InvalidAmount):
            ledger.buy_insurance(PASSENGER, flight_key, premium)

    def test_unknown_flight(self, ledger):
        with pytest.raises(FlightNotFound):
            ledger.buy_insurance(PASSENGER, ledger.flight_key(GENESIS, "SA999", 1000), 1)
        assert ledger.treasury_balance() == Decimal("10")

    def test_duplicate_policy(self, ledger, flight_key):
        ledger.buy_insurance(PASSENGER, flight_key, "0.5")
        with pytest.raises(DuplicatePolicy):
            ledger.buy_insurance(PASSENGER, flight_key, "0.5")
        assert ledger.treasury_balance() == Decimal("10.5")

    def test_policies_listed_in_purchase_order(self, ledger, flight_key):
        ledger.buy_insurance(PASSENGER, flight_key, "0.2")
        ledger.buy_insurance(OTHER_PASSENGER, flight_key, "0.3")
        assert [p.passenger for p in ledger.policies_for_flight(flight_key)] == [PASSENGER, OTHER_PASSENGER]


class TestCreditInsurees:
    """Test payout credit."""

    def test_credit_multiplies_premium(self, ledger, flight_key):
        ledger.buy_insurance(PASSENGER, flight_key, 1)
        ledger.buy_insurance(OTHER_PASSENGER, flight_key, "0.4")

        events = credit(ledger, flight_key)

        assert [type(event) for event in events] == [PayoutCredited, PayoutCredited]
        assert ledger.insuree_balance(PASSENGER) == Decimal("1.5")
        assert ledger.insuree_balance(OTHER_PASSENGER) == Decimal("0.6")
        assert ledger.get_policy(PASSENGER, flight_key).consumed

    def test_credit_is_idempotent(self, ledger, flight_key):
        ledger.buy_insurance(PASSENGER, flight_key, 1)
        credit(ledger, flight_key)
        assert credit(ledger, flight_key) == []
        assert ledger.insuree_balance(PASSENGER) == Decimal("1.5")

    def test_credit_without_policies(self, ledger, flight_key):
        assert credit(ledger, flight_key) == []

    def test_balances_accumulate_across_flights(self, ledger, flight_key):
        other_key = ledger.register_flight(GENESIS, "SA200", 2000, GENESIS)
        ledger.buy_insurance(PASSENGER, flight_key, 1)
        ledger.buy_insurance(PASSENGER, other_key, "0.5")
        credit(ledger, flight_key)
        credit(ledger, other_key)
        assert ledger.insuree_balance(PASSENGER) == Decimal("2.25")


class TestWithdrawal:
    """Test the withdrawal discipline."""

    def test_nothing_to_withdraw(self, ledger, gateway):
        assert ledger.make_withdrawal(PASSENGER) == Decimal("0")
        assert gateway.transfers == []

    def test_withdraw_once(self, ledger, gateway, flight_key):
        facts = []
        ledger.subscribe(facts.append, WithdrawalPaid)
        ledger.buy_insurance(PASSENGER, flight_key, 1)
        credit(ledger, flight_key)

        assert ledger.make_withdrawal(PASSENGER) == Decimal("1.5")
        assert ledger.insuree_balance(PASSENGER) == Decimal("0")
        assert ledger.treasury_balance() == Decimal("9.5")
        assert gateway.transfers == [(PASSENGER, Decimal("1.5"))]

        assert ledger.make_withdrawal(PASSENGER) == Decimal("0")
        assert gateway.total_paid(PASSENGER) == Decimal("1.5")
        assert len(facts) == 1
        assert facts[0].amount == Decimal("1.5")

    def test_failed_transfer_restores_balance(self):
        gateway = FailingGateway()
        ledger = build_ledger(gateway)
        key = ledger.register_flight(GENESIS, "SA100", 1000, GENESIS)
        ledger.buy_insurance(PASSENGER, key, 1)
        credit(ledger, key)
        treasury = ledger.treasury_balance()

        with pytest.raises(TransferFailed):
            ledger.make_withdrawal(PASSENGER)

        assert gateway.attempts == 1
        assert ledger.insuree_balance(PASSENGER) == Decimal("1.5")
        assert ledger.treasury_balance() == treasury

    def test_reentrant_withdrawal_pays_once(self):
        gateway = ReentrantGateway()
        ledger = build_ledger(gateway)
        gateway.ledger = ledger
        key = ledger.register_flight(GENESIS, "SA100", 1000, GENESIS)
        ledger.buy_insurance(PASSENGER, key, 1)
        credit(ledger, key)

        assert ledger.make_withdrawal(PASSENGER) == Decimal("1.5")
        assert gateway.reentrant_results == [Decimal("0")]
        assert gateway.transfers == [(PASSENGER, Decimal("1.5"))]
        assert ledger.insuree_balance(PASSENGER) == Decimal("0")

    def test_concurrent_withdrawals_pay_once(self, ledger, gateway, flight_key):
        ledger.buy_insurance(PASSENGER, flight_key, 1)
        credit(ledger, flight_key)

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda _: ledger.make_withdrawal(PASSENGER), range(16)))

        assert sum(results, Decimal("0")) == Decimal("1.5")
        assert sum(1 for result in results if result > 0) == 1
        assert gateway.transfers == [(PASSENGER, Decimal("1.5"))]

    def test_treasury_shortfall_is_transfer_failure(self, ledger, gateway, flight_key):
        ledger.buy_insurance(PASSENGER, flight_key, 1)
        credit(ledger, flight_key)
        ledger.state.treasury = Decimal("1")

        with pytest.raises(TransferFailed):
            ledger.make_withdrawal(PASSENGER)
        assert ledger.insuree_balance(PASSENGER) == Decimal("1.5")
        assert gateway.transfers == []
